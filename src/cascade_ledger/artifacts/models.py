"""
Pydantic models for phase artifacts.

Defines phases, completion statuses, parsed filenames, artifacts and
match groups used throughout the artifacts module.
"""

from datetime import datetime
from enum import Enum
from functools import total_ordering
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from cascade_ledger.core.config import (
    EXECUTED_MARKER,
    EXECUTION_DIR_NAME,
    PLAN_DIR_NAME,
    VERIFICATION_DIR_NAME,
    VERIFICATION_MARKER,
)


class Phase(Enum):
    """Workflow phase an artifact belongs to."""

    PLAN = "Plan"
    EXECUTION = "Execution"
    VERIFICATION = "Verification"

    @property
    def number(self) -> int:
        """1-based position in the workflow."""
        return list(Phase).index(self) + 1

    @property
    def dir_name(self) -> str:
        """Directory name under the plans root."""
        return {
            Phase.PLAN: PLAN_DIR_NAME,
            Phase.EXECUTION: EXECUTION_DIR_NAME,
            Phase.VERIFICATION: VERIFICATION_DIR_NAME,
        }[self]

    @property
    def marker(self) -> str | None:
        """Filename marker required for this phase (None for plans)."""
        return {
            Phase.PLAN: None,
            Phase.EXECUTION: EXECUTED_MARKER,
            Phase.VERIFICATION: VERIFICATION_MARKER,
        }[self]


@total_ordering
class Status(Enum):
    """Completion status of a match group, ordered Missing < Verified."""

    MISSING = "Missing"
    PLANNED = "Planned"
    EXECUTED = "Executed"
    VERIFIED = "Verified"

    @property
    def rank(self) -> int:
        return list(Status).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Status):
            return NotImplemented
        return self.rank < other.rank


class ParsedFilename(BaseModel):
    """Result of decoding an artifact filename."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(description="Original base filename")
    timestamp: str | None = Field(
        default=None, description="YYYYMMDD_HHMMSS prefix if present"
    )
    identifier: str = Field(description="Unit-of-work label, phase suffix stripped")
    phase_suffix: str | None = Field(
        default=None, description="EXECUTED, VERIFICATION, or None for plans"
    )

    @property
    def is_canonical(self) -> bool:
        """True when the filename carried a timestamp prefix."""
        return self.timestamp is not None

    @property
    def created_at(self) -> datetime | None:
        """Timestamp prefix as a naive datetime, None if absent or invalid."""
        if self.timestamp is None:
            return None
        try:
            return datetime.strptime(self.timestamp, "%Y%m%d_%H%M%S")
        except ValueError:
            return None


class Artifact(BaseModel):
    """One phase document for one unit of work."""

    model_config = ConfigDict(frozen=True)

    phase: Phase = Field(description="Phase, taken from the containing directory")
    path: Path = Field(description="Location on disk")
    parsed: ParsedFilename = Field(description="Decoded filename")
    modified_at: float | None = Field(
        default=None, description="Last-modified instant, display ordering only"
    )

    @property
    def filename(self) -> str:
        return self.parsed.filename

    @property
    def identifier(self) -> str:
        return self.parsed.identifier

    @property
    def timestamp(self) -> str | None:
        return self.parsed.timestamp


class MatchGroup(BaseModel):
    """
    Plan, execution and verification artifacts sharing one identifier.

    Recomputed per query; never persisted.
    """

    identifier: str
    plan: Artifact | None = None
    execution: Artifact | None = None
    verification: Artifact | None = None

    @property
    def status(self) -> Status:
        """Highest status whose prerequisite artifacts are all present."""
        from cascade_ledger.artifacts.status import status_from_presence

        return status_from_presence(
            self.plan is not None,
            self.execution is not None,
            self.verification is not None,
        )

    @property
    def is_anomalous(self) -> bool:
        """
        True when later-phase artifacts exist out of order.

        Covers an execution or verification with no plan, and a
        verification with no execution.
        """
        if self.plan is None:
            return self.execution is not None or self.verification is not None
        return self.execution is None and self.verification is not None

    @property
    def artifacts(self) -> list[Artifact]:
        """Present artifacts in phase order."""
        return [a for a in (self.plan, self.execution, self.verification) if a is not None]

    def get(self, phase: Phase) -> Artifact | None:
        """Return the artifact for ``phase`` if present."""
        return {
            Phase.PLAN: self.plan,
            Phase.EXECUTION: self.execution,
            Phase.VERIFICATION: self.verification,
        }[phase]
