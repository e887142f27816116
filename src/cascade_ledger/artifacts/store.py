"""
Read-only access to the phase artifact directories.

Manages the plans root layout:
- <root>/1_pre_exec_plans/            (Plan)
- <root>/2_post_exec_plans/           (Execution)
- <root>/3_checked_delta_exec_plans/  (Verification)

Listings are sorted by filename so first-match selection is reproducible.
Nothing here writes to the store.
"""

import logging
from pathlib import Path

from cascade_ledger.artifacts import filenames
from cascade_ledger.artifacts.models import Artifact, Phase
from cascade_ledger.core.config import CascadeSettings
from cascade_ledger.core.exceptions import ArtifactStoreError

logger = logging.getLogger(__name__)


class ArtifactStore:
    """
    Directory listing provider and content reader for one plans root.

    A missing phase directory is treated as holding zero artifacts.
    """

    def __init__(self, root: Path):
        """
        Initialize the store.

        Args:
            root: Plans root containing the three phase directories
        """
        self._root = Path(root)

    @classmethod
    def from_settings(cls, settings: CascadeSettings | None = None) -> "ArtifactStore":
        """Create a store for the configured project."""
        settings = settings or CascadeSettings.from_env()
        return cls(settings.plans_root)

    @property
    def root(self) -> Path:
        return self._root

    def exists(self) -> bool:
        """True if the plans root directory exists."""
        return self._root.is_dir()

    def phase_dir(self, phase: Phase) -> Path:
        """Directory holding artifacts of ``phase``."""
        return self._root / phase.dir_name

    def phase_of(self, path: Path) -> Phase | None:
        """Phase owning ``path`` by directory membership, None if outside the store."""
        parent = Path(path).parent
        for phase in Phase:
            if parent == self.phase_dir(phase):
                return phase
        return None

    def list_filenames(self, phase: Phase) -> list[str]:
        """
        Sorted artifact filenames in a phase directory.

        Templates, hidden files and files with another extension are skipped.
        """
        directory = self.phase_dir(phase)
        if not directory.is_dir():
            return []
        try:
            names = [
                entry.name
                for entry in directory.iterdir()
                if entry.is_file() and filenames.is_artifact_filename(entry.name)
            ]
        except OSError as e:
            logger.warning(
                "Could not list phase directory",
                extra={"event": "list_failed", "directory": str(directory), "error": str(e)},
            )
            return []
        return sorted(names)

    def list_artifacts(self, phase: Phase) -> list[Artifact]:
        """Artifacts in a phase directory, sorted by filename."""
        directory = self.phase_dir(phase)
        artifacts = []
        for name in self.list_filenames(phase):
            path = directory / name
            try:
                modified_at = path.stat().st_mtime
            except OSError:
                modified_at = None
            artifacts.append(
                Artifact(
                    phase=phase,
                    path=path,
                    parsed=filenames.parse(name),
                    modified_at=modified_at,
                )
            )
        return artifacts

    def artifact(self, phase: Phase, filename: str) -> Artifact:
        """Build the artifact record for a known filename."""
        path = self.phase_dir(phase) / filename
        try:
            modified_at = path.stat().st_mtime
        except OSError:
            modified_at = None
        return Artifact(
            phase=phase,
            path=path,
            parsed=filenames.parse(filename),
            modified_at=modified_at,
        )

    def count(self, phase: Phase) -> int:
        """Number of artifacts in a phase directory."""
        return len(self.list_filenames(phase))

    def read_content(self, path: Path) -> str | None:
        """
        Read artifact text.

        Args:
            path: File to read

        Returns:
            File text, or None if the file does not exist

        Raises:
            ArtifactStoreError: If the file exists but cannot be read
        """
        path = Path(path)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise ArtifactStoreError(f"Cannot read artifact: {e}", path=str(path))


def newest_first(artifacts: list[Artifact]) -> list[Artifact]:
    """Order artifacts for display: most recently modified first, then by name."""
    return sorted(
        artifacts,
        key=lambda a: (-(a.modified_at or 0.0), a.filename),
    )
