"""
Line-delimited JSON entry point for todo enforcement.

Input is one JSON object::

    {"todos": [{"content": "Phase 1: ...", "status": "pending"}, ...],
     "operation": "update", "caller": "editor", "token": "..."}

``operation`` defaults to "update"; ``caller`` and ``token`` are optional.
Output is ``{"todos": [...]}`` on success or ``{"error": ..., "todo": ...}``
for the first rejected record. A payload that cannot be parsed raises
``PayloadError`` and produces no output.
"""

import json
import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from cascade_ledger.artifacts.store import ArtifactStore
from cascade_ledger.core.config import CascadeSettings, EnforcementConfig
from cascade_ledger.core.exceptions import (
    InvalidRequestTokenError,
    PayloadError,
    RateLimitExceededError,
)
from cascade_ledger.enforcement.guards import DEFAULT_CALLER, RequestGuard
from cascade_ledger.enforcement.rules import (
    EnforcementResult,
    Operation,
    TodoRecord,
    process_todos,
)

logger = logging.getLogger(__name__)


class HookRequest(BaseModel):
    """Decoded hook payload."""

    todos: list[TodoRecord]
    operation: Operation = Operation.UPDATE
    caller: str = Field(default=DEFAULT_CALLER)
    token: str | None = None


def parse_payload(raw: str) -> HookRequest:
    """
    Decode one hook payload.

    Raises:
        PayloadError: If the text is not JSON or does not have the expected shape
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise PayloadError(e.msg, line=e.lineno, column=e.colno, position=e.pos)

    if not isinstance(data, dict):
        raise PayloadError("Payload must be a JSON object")

    try:
        return HookRequest.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise PayloadError(f"Invalid payload at {location}: {first['msg']}")


class EnforcementHook:
    """
    Enforcement entry point bound to one plans root.

    The guard is owned by the hook instance; separate hooks never share
    rate counters or tokens. Rate limiting and token checks only span
    requests handled by the same instance, so long-lived hosts keep one
    hook and issue tokens through ``guard.token``.
    """

    def __init__(
        self,
        store: ArtifactStore,
        config: EnforcementConfig | None = None,
        guard: RequestGuard | None = None,
    ):
        self.store = store
        self.config = config or EnforcementConfig()
        self.guard = guard

    @classmethod
    def from_settings(cls, settings: CascadeSettings | None = None) -> "EnforcementHook":
        settings = settings or CascadeSettings.from_env()
        return cls(
            store=ArtifactStore.from_settings(settings),
            config=settings.enforcement,
            guard=RequestGuard.from_settings(settings),
        )

    def process(self, request: HookRequest) -> EnforcementResult:
        """Run the rules for a decoded request."""
        return process_todos(request.todos, request.operation, self.store, self.config)

    def handle(self, raw: str) -> dict[str, Any]:
        """
        Process one raw payload.

        Guard rejections are reported as an error response, not raised.

        Raises:
            PayloadError: If the payload cannot be parsed
        """
        request = parse_payload(raw)

        if self.guard is not None:
            try:
                self.guard.check(request.caller, request.token)
            except (InvalidRequestTokenError, RateLimitExceededError) as e:
                return {"error": e.message, "details": e.details}

        return self.process(request).to_payload()


def run_hook(raw: str, settings: CascadeSettings | None = None) -> dict[str, Any]:
    """Handle one payload with a hook built from settings."""
    return EnforcementHook.from_settings(settings).handle(raw)
