"""
Runtime configuration for Cascade Ledger.

Settings come from CASCADE_* environment variables. The artifact store
layout (phase directories, extension, markers) is fixed and lives here
as module constants.
"""

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from cascade_ledger.core.exceptions import ConfigurationError

# Artifact store layout
PLANS_SUBDIR = Path(".claude") / "plans"
PLAN_DIR_NAME = "1_pre_exec_plans"
EXECUTION_DIR_NAME = "2_post_exec_plans"
VERIFICATION_DIR_NAME = "3_checked_delta_exec_plans"
LOGS_SUBDIR = Path(".claude") / "logs"
ENFORCER_LOG_NAME = "todo_enforcer.log"

ARTIFACT_EXTENSION = ".md"
TEMPLATE_PREFIX = "TEMPLATE"
EXECUTED_MARKER = "EXECUTED"
VERIFICATION_MARKER = "VERIFICATION"

DEFAULT_RATE_LIMIT = "10/minute"

# Convert period names to seconds
_PERIOD_SECONDS = {
    "second": 1,
    "minute": 60,
    "hour": 3600,
    "day": 86400,
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def parse_rate_limit(limit_str: str) -> tuple[int, int]:
    """
    Parse rate limit string into (max_requests, window_seconds).

    Args:
        limit_str: Rate limit string like "10/second" or "100/minute"

    Returns:
        Tuple of (max_requests, window_seconds)

    Raises:
        ConfigurationError: If the string is malformed
    """
    try:
        parts = limit_str.split("/")
        count = int(parts[0])
        period = parts[1].strip().lower() if len(parts) > 1 else "second"
    except (ValueError, IndexError):
        raise ConfigurationError(
            f"Invalid rate limit format: {limit_str}",
            config_key="rate_limit",
        )

    if count < 1 or period not in _PERIOD_SECONDS:
        raise ConfigurationError(
            f"Invalid rate limit format: {limit_str}",
            config_key="rate_limit",
        )
    return count, _PERIOD_SECONDS[period]


class EnforcementConfig(BaseModel):
    """Toggles for the todo enforcement rules."""

    enforce_phase_prefix: bool = Field(
        default=True, description="Require a 'Phase N:' prefix on todos"
    )
    block_incomplete_phases: bool = Field(
        default=True, description="Block new todos while phases are incomplete"
    )
    prevent_phase_skipping: bool = Field(
        default=True, description="Refuse to start Phase 2 before Phase 1 is complete"
    )
    validate_phase_completion: bool = Field(
        default=True, description="Require a plan file before completing Phase 1"
    )

    @classmethod
    def from_env(cls) -> "EnforcementConfig":
        """Load enforcement toggles from environment."""
        return cls(
            enforce_phase_prefix=_env_flag("CASCADE_ENFORCE_PHASE_PREFIX", True),
            block_incomplete_phases=_env_flag("CASCADE_BLOCK_INCOMPLETE_PHASES", True),
            prevent_phase_skipping=_env_flag("CASCADE_PREVENT_PHASE_SKIPPING", True),
            validate_phase_completion=_env_flag("CASCADE_VALIDATE_PHASE_COMPLETION", True),
        )


class CascadeSettings(BaseModel):
    """
    Process configuration.

    Environment variables:
    - CASCADE_PROJECT_DIR / CLAUDE_PROJECT_DIR: Project root (default: cwd)
    - CASCADE_PLANS_DIR: Plans directory relative to the project root
    - CASCADE_ALLOW_UNSAFE_MARKUP: Disable markup escaping (default: false)
    - CASCADE_RATE_LIMIT: "<n>/<period>" for the enforcement hook
    - CASCADE_LOG_LEVEL: Logging level name (default: WARNING)
    - CASCADE_LOG_TO_FILE: Append enforcement logs to a file (default: true)
    """

    project_dir: Path = Field(default_factory=Path.cwd)
    plans_subdir: Path = Field(default=PLANS_SUBDIR)
    allow_unsafe_markup: bool = False
    rate_limit: str = DEFAULT_RATE_LIMIT
    log_level: str = "WARNING"
    log_to_file: bool = True
    enforcement: EnforcementConfig = Field(default_factory=EnforcementConfig)

    @property
    def plans_root(self) -> Path:
        """Directory holding the three phase directories."""
        return self.project_dir / self.plans_subdir

    @property
    def logs_dir(self) -> Path:
        """Directory for enforcement log files."""
        return self.project_dir / LOGS_SUBDIR

    @property
    def rate_limit_window(self) -> tuple[int, int]:
        """Parsed (max_requests, window_seconds)."""
        return parse_rate_limit(self.rate_limit)

    @classmethod
    def from_env(cls) -> "CascadeSettings":
        """Load settings from environment."""
        project_dir = os.getenv("CASCADE_PROJECT_DIR") or os.getenv("CLAUDE_PROJECT_DIR")
        log_level = os.getenv("CASCADE_LOG_LEVEL", "WARNING").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ConfigurationError(
                f"Unknown log level: {log_level}",
                env_var="CASCADE_LOG_LEVEL",
            )

        rate_limit = os.getenv("CASCADE_RATE_LIMIT", DEFAULT_RATE_LIMIT)
        parse_rate_limit(rate_limit)

        return cls(
            project_dir=Path(project_dir) if project_dir else Path.cwd(),
            plans_subdir=Path(os.getenv("CASCADE_PLANS_DIR", str(PLANS_SUBDIR))),
            allow_unsafe_markup=_env_flag("CASCADE_ALLOW_UNSAFE_MARKUP", False),
            rate_limit=rate_limit,
            log_level=log_level,
            log_to_file=_env_flag("CASCADE_LOG_TO_FILE", True),
            enforcement=EnforcementConfig.from_env(),
        )
