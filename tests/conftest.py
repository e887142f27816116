"""Pytest configuration and fixtures."""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from cascade_ledger.artifacts.models import Phase
from cascade_ledger.artifacts.store import ArtifactStore

# Keep hook runs quiet and unthrottled in tests
os.environ.setdefault("CASCADE_RATE_LIMIT", "1000/second")
os.environ.setdefault("CASCADE_LOG_TO_FILE", "false")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def plans_root(temp_dir: Path) -> Path:
    """Provide an empty plans root with the three phase directories."""
    root = temp_dir / ".claude" / "plans"
    for phase in Phase:
        (root / phase.dir_name).mkdir(parents=True)
    return root


@pytest.fixture
def write_artifact(plans_root: Path):
    """Return a helper that writes a file into a phase directory."""

    def _write(phase: Phase, filename: str, content: str = "# Document\n") -> Path:
        path = plans_root / phase.dir_name / filename
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def login_root(plans_root: Path, write_artifact) -> Path:
    """Plans root holding a complete LOGIN unit of work."""
    write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md")
    write_artifact(Phase.EXECUTION, "20250816_110000_LOGIN_EXECUTED.md")
    write_artifact(Phase.VERIFICATION, "20250816_120000_LOGIN_VERIFICATION.md")
    return plans_root


@pytest.fixture
def store(plans_root: Path) -> ArtifactStore:
    """Provide a store over the temporary plans root."""
    return ArtifactStore(plans_root)
