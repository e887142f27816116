"""
Cascade Ledger Enforcement Module.

Phase rules for todo records, request guards, and the JSON hook entry
point.
"""

from .guards import FixedWindowRateLimiter, RequestGuard, RequestToken
from .hook import EnforcementHook, HookRequest, parse_payload, run_hook
from .rules import (
    EnforcementResult,
    Operation,
    TodoRecord,
    TodoStatus,
    has_phase1_plan,
    process_todos,
    validate_todo,
)

__all__ = [
    # Rules
    "Operation",
    "TodoStatus",
    "TodoRecord",
    "EnforcementResult",
    "validate_todo",
    "process_todos",
    "has_phase1_plan",
    # Guards
    "FixedWindowRateLimiter",
    "RequestToken",
    "RequestGuard",
    # Hook
    "HookRequest",
    "EnforcementHook",
    "parse_payload",
    "run_hook",
]
