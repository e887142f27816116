"""
Phase enforcement rules for todo records.

A todo's content must name its phase ("Phase 1: ..."). Depending on the
operation and the record's status, the rules check the plans root:

- completing a Phase 1 todo needs a matching plan file (fuzzy match)
- starting a Phase 2 todo needs every unit of work to be complete
- adding todos is blocked while any unit of work is incomplete

Batches are fail-fast: the first invalid record stops processing.
"""

import logging
import re
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from cascade_ledger.artifacts.matching import FUZZY, derive_keywords
from cascade_ledger.artifacts.models import Phase
from cascade_ledger.artifacts.status import has_incomplete_phases
from cascade_ledger.artifacts.store import ArtifactStore
from cascade_ledger.core.config import EnforcementConfig
from cascade_ledger.core.exceptions import EnforcementError

logger = logging.getLogger(__name__)

PHASE_PREFIX_PATTERN = re.compile(r"^Phase ([123]):", re.IGNORECASE)

MISSING_PREFIX_MESSAGE = 'Todo must start with "Phase 1:", "Phase 2:", or "Phase 3:"'
MISSING_PLAN_MESSAGE = (
    "Cannot mark Phase 1 complete without a plan document. Create a Phase 1 plan first."
)
PHASE_SKIP_MESSAGE = "Cannot start Phase 2 until all Phase 1 plans are complete"
INCOMPLETE_PHASES_MESSAGE = (
    "Cannot add new todos while there are incomplete phases. Complete all phases first."
)


class Operation(str, Enum):
    """Kind of todo write being checked."""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


class TodoStatus(str, Enum):
    """Todo statuses the rules look at."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TodoRecord(BaseModel):
    """One todo item. Unknown fields are kept and echoed back."""

    model_config = ConfigDict(extra="allow")

    content: str = Field(default="", description="Todo text, prefixed with its phase")
    status: str = Field(default=TodoStatus.PENDING.value, description="Todo status")

    @property
    def phase_number(self) -> int | None:
        """Phase named by the content prefix, None without a prefix."""
        match = PHASE_PREFIX_PATTERN.match(self.content)
        return int(match.group(1)) if match else None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump()


class EnforcementResult(BaseModel):
    """Outcome of one batch."""

    success: bool
    todos: list[TodoRecord] = Field(default_factory=list)
    message: str | None = None
    todo: TodoRecord | None = None
    rule: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Hook response: ``{"todos": [...]}`` or ``{"error": ..., "todo": ...}``."""
        if self.success:
            return {"todos": [todo.to_payload() for todo in self.todos]}
        return {
            "error": self.message,
            "todo": self.todo.to_payload() if self.todo else None,
        }


def has_phase1_plan(todo: TodoRecord, store: ArtifactStore) -> bool:
    """True if some plan file matches the todo's keywords."""
    keywords = derive_keywords(todo.content)
    return FUZZY.find(keywords, store.list_filenames(Phase.PLAN), Phase.PLAN) is not None


class _IncompletePhases:
    """Lazily computed, once per batch."""

    def __init__(self, store: ArtifactStore):
        self._store = store
        self._value: bool | None = None

    def __call__(self) -> bool:
        if self._value is None:
            self._value = has_incomplete_phases(self._store)
            if self._value:
                logger.warning(
                    "Found incomplete phases in the project",
                    extra={"event": "incomplete_phases", "root": str(self._store.root)},
                )
        return self._value


def validate_todo(
    todo: TodoRecord,
    operation: Operation,
    store: ArtifactStore,
    config: EnforcementConfig | None = None,
    incomplete_phases: Callable[[], bool] | None = None,
) -> None:
    """
    Check one todo against the enforcement rules.

    Raises:
        EnforcementError: With the user-facing message of the first rule violated
    """
    config = config or EnforcementConfig()
    incomplete_phases = incomplete_phases or _IncompletePhases(store)

    # completed records are only re-checked when being marked complete
    if todo.status == TodoStatus.COMPLETED.value and operation is not Operation.UPDATE:
        return

    if config.enforce_phase_prefix and todo.phase_number is None:
        raise EnforcementError(MISSING_PREFIX_MESSAGE, rule="phase_prefix", todo=todo.to_payload())

    phase = todo.phase_number
    if phase == 1:
        if (
            config.validate_phase_completion
            and todo.status == TodoStatus.COMPLETED.value
            and operation is Operation.UPDATE
            and not has_phase1_plan(todo, store)
        ):
            raise EnforcementError(
                MISSING_PLAN_MESSAGE, rule="phase_completion", todo=todo.to_payload()
            )
    elif phase == 2:
        if (
            config.prevent_phase_skipping
            and todo.status == TodoStatus.IN_PROGRESS.value
            and operation is Operation.UPDATE
            and incomplete_phases()
        ):
            raise EnforcementError(PHASE_SKIP_MESSAGE, rule="phase_skipping", todo=todo.to_payload())

    if config.block_incomplete_phases and operation is Operation.ADD and incomplete_phases():
        raise EnforcementError(
            INCOMPLETE_PHASES_MESSAGE, rule="incomplete_phases", todo=todo.to_payload()
        )


def process_todos(
    todos: list[TodoRecord],
    operation: Operation,
    store: ArtifactStore,
    config: EnforcementConfig | None = None,
) -> EnforcementResult:
    """
    Validate a batch in input order.

    Returns:
        Success with all records, or the first violation with its record
    """
    incomplete_phases = _IncompletePhases(store)
    for todo in todos:
        try:
            validate_todo(todo, operation, store, config, incomplete_phases)
        except EnforcementError as e:
            logger.error(
                e.message,
                extra={"event": "todo_rejected", "rule": e.rule, "operation": operation.value},
            )
            return EnforcementResult(success=False, message=e.message, todo=todo, rule=e.rule)

    logger.info(
        f"Processed {len(todos)} todos successfully",
        extra={"event": "todos_processed", "count": len(todos), "operation": operation.value},
    )
    return EnforcementResult(success=True, todos=list(todos))
