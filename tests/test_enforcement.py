"""Tests for todo enforcement rules, guards and the JSON hook."""

import json
from pathlib import Path

import pytest

from cascade_ledger.artifacts import ArtifactStore, Phase
from cascade_ledger.core.config import CascadeSettings, EnforcementConfig
from cascade_ledger.core.exceptions import (
    EnforcementError,
    InvalidRequestTokenError,
    PayloadError,
    RateLimitExceededError,
)
from cascade_ledger.enforcement import (
    EnforcementHook,
    FixedWindowRateLimiter,
    Operation,
    RequestGuard,
    RequestToken,
    TodoRecord,
    has_phase1_plan,
    parse_payload,
    process_todos,
    validate_todo,
)
from cascade_ledger.enforcement.rules import (
    INCOMPLETE_PHASES_MESSAGE,
    MISSING_PLAN_MESSAGE,
    MISSING_PREFIX_MESSAGE,
    PHASE_SKIP_MESSAGE,
)


def todo(content: str, status: str = "pending") -> TodoRecord:
    return TodoRecord(content=content, status=status)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


# =============================================================================
# Rule tests
# =============================================================================


class TestValidateTodo:
    """Tests for single-record rules."""

    def test_missing_prefix(self, store: ArtifactStore):
        with pytest.raises(EnforcementError) as exc_info:
            validate_todo(todo("write tests"), Operation.UPDATE, store)
        assert exc_info.value.message == MISSING_PREFIX_MESSAGE
        assert exc_info.value.rule == "phase_prefix"

    def test_prefix_is_case_insensitive(self, store: ArtifactStore):
        validate_todo(todo("phase 3: verify login"), Operation.UPDATE, store)

    def test_prefix_check_can_be_disabled(self, store: ArtifactStore):
        config = EnforcementConfig(enforce_phase_prefix=False)
        validate_todo(todo("write tests"), Operation.UPDATE, store, config)

    def test_completed_records_skip_checks_outside_update(self, store: ArtifactStore):
        validate_todo(todo("no prefix", "completed"), Operation.ADD, store)
        validate_todo(todo("no prefix", "completed"), Operation.DELETE, store)

    def test_completing_phase1_needs_plan(self, store: ArtifactStore):
        with pytest.raises(EnforcementError) as exc_info:
            validate_todo(todo("Phase 1: login", "completed"), Operation.UPDATE, store)
        assert exc_info.value.message == MISSING_PLAN_MESSAGE

    def test_completing_phase1_with_plan(self, store: ArtifactStore, write_artifact):
        write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md")
        validate_todo(todo("Phase 1: login", "completed"), Operation.UPDATE, store)

    def test_pending_phase1_without_plan(self, store: ArtifactStore):
        validate_todo(todo("Phase 1: login", "pending"), Operation.UPDATE, store)

    def test_starting_phase2_with_incomplete_phases(self, store: ArtifactStore, write_artifact):
        write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md")
        with pytest.raises(EnforcementError) as exc_info:
            validate_todo(todo("Phase 2: login", "in_progress"), Operation.UPDATE, store)
        assert exc_info.value.message == PHASE_SKIP_MESSAGE

    def test_starting_phase2_when_everything_verified(self, login_root: Path):
        store = ArtifactStore(login_root)
        validate_todo(todo("Phase 2: login", "in_progress"), Operation.UPDATE, store)

    def test_phase_skipping_check_can_be_disabled(self, store: ArtifactStore, write_artifact):
        write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md")
        config = EnforcementConfig(prevent_phase_skipping=False)
        validate_todo(todo("Phase 2: login", "in_progress"), Operation.UPDATE, store, config)

    def test_add_blocked_by_incomplete_phases(self, store: ArtifactStore, write_artifact):
        write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md")
        with pytest.raises(EnforcementError) as exc_info:
            validate_todo(todo("Phase 1: signup"), Operation.ADD, store)
        assert exc_info.value.message == INCOMPLETE_PHASES_MESSAGE

    def test_add_blocked_by_orphan_artifact(self, login_root: Path, write_artifact):
        write_artifact(Phase.VERIFICATION, "20250817_120000_ORPHAN_VERIFICATION.md")
        with pytest.raises(EnforcementError):
            validate_todo(todo("Phase 1: signup"), Operation.ADD, ArtifactStore(login_root))

    def test_add_allowed_when_everything_verified(self, login_root: Path):
        validate_todo(todo("Phase 1: signup"), Operation.ADD, ArtifactStore(login_root))

    def test_fuzzy_plan_lookup(self, store: ArtifactStore, write_artifact):
        """Five-character prefixes of keywords are enough to find a plan."""
        write_artifact(Phase.PLAN, "20250816_100000_USER_AUTHENTICATE.md")
        assert has_phase1_plan(todo("Phase 1: user authentication"), store)
        assert not has_phase1_plan(todo("Phase 1: billing"), store)


class TestProcessTodos:
    """Tests for batch processing."""

    def test_success_returns_all_records(self, store: ArtifactStore):
        todos = [todo("Phase 1: a"), todo("Phase 3: b", "in_progress")]
        result = process_todos(todos, Operation.UPDATE, store)
        assert result.success
        assert result.to_payload() == {
            "todos": [
                {"content": "Phase 1: a", "status": "pending"},
                {"content": "Phase 3: b", "status": "in_progress"},
            ]
        }

    def test_first_failure_stops_batch(self, store: ArtifactStore):
        todos = [todo("Phase 1: ok"), todo("bad one"), todo("also bad")]
        result = process_todos(todos, Operation.UPDATE, store)
        assert not result.success
        assert result.todo.content == "bad one"
        assert result.to_payload() == {
            "error": MISSING_PREFIX_MESSAGE,
            "todo": {"content": "bad one", "status": "pending"},
        }

    def test_extra_fields_are_echoed(self, store: ArtifactStore):
        record = TodoRecord.model_validate(
            {"content": "Phase 1: a", "status": "pending", "id": "7", "priority": "high"}
        )
        payload = process_todos([record], Operation.UPDATE, store).to_payload()
        assert payload["todos"][0]["id"] == "7"
        assert payload["todos"][0]["priority"] == "high"

    def test_empty_batch(self, store: ArtifactStore):
        assert process_todos([], Operation.ADD, store).to_payload() == {"todos": []}


# =============================================================================
# Guard tests
# =============================================================================


class TestFixedWindowRateLimiter:
    """Tests for the per-caller request counter."""

    def test_allows_up_to_limit(self):
        limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60, clock=FakeClock())
        assert limiter.is_allowed("a")
        assert limiter.is_allowed("a")
        assert not limiter.is_allowed("a")

    def test_callers_are_independent(self):
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        assert limiter.is_allowed("a")
        assert limiter.is_allowed("b")
        assert not limiter.is_allowed("a")

    def test_window_resets(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
        assert limiter.is_allowed("a")
        assert not limiter.is_allowed("a")
        clock.now += 61
        assert limiter.is_allowed("a")

    def test_remaining_and_retry_after(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(max_requests=3, window_seconds=60, clock=clock)
        assert limiter.remaining("a") == 3
        assert limiter.retry_after("a") == 0
        limiter.is_allowed("a")
        assert limiter.remaining("a") == 2
        clock.now += 30
        assert limiter.retry_after("a") == 31

    def test_reset(self):
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.is_allowed("a")
        limiter.reset("a")
        assert limiter.is_allowed("a")

    def test_from_limit(self):
        limiter = FixedWindowRateLimiter.from_limit("10/minute")
        assert limiter.max_requests == 10
        assert limiter.window_seconds == 60


class TestRequestToken:
    """Tests for one-shot tokens."""

    def test_token_is_single_use(self):
        token = RequestToken()
        value = token.generate()
        assert len(value) == 64
        assert token.validate(value)
        assert not token.validate(value)

    def test_wrong_token(self):
        token = RequestToken()
        token.generate()
        assert not token.validate("nope")
        assert token.issued

    def test_no_token_issued(self):
        assert not RequestToken().validate("anything")

    def test_new_token_replaces_old(self):
        token = RequestToken()
        old = token.generate()
        new = token.generate()
        assert not token.validate(old)
        assert token.validate(new)


class TestRequestGuard:
    """Tests for the combined guard."""

    def test_rate_limit_exceeded(self):
        guard = RequestGuard(limiter=FixedWindowRateLimiter(1, 60, clock=FakeClock()))
        guard.check("editor")
        with pytest.raises(RateLimitExceededError) as exc_info:
            guard.check("editor")
        assert exc_info.value.caller == "editor"

    def test_token_checked_only_when_issued(self):
        guard = RequestGuard(limiter=FixedWindowRateLimiter(10, 60))
        guard.check(token=None)
        value = guard.token.generate()
        with pytest.raises(InvalidRequestTokenError):
            guard.check(token="wrong")
        guard.check(token=value)

    def test_guards_do_not_share_state(self):
        first = RequestGuard(limiter=FixedWindowRateLimiter(1, 60, clock=FakeClock()))
        second = RequestGuard(limiter=FixedWindowRateLimiter(1, 60, clock=FakeClock()))
        first.token.generate()
        second.check("x")
        assert not second.token.issued


# =============================================================================
# Hook tests
# =============================================================================


class TestParsePayload:
    """Tests for payload decoding."""

    def test_defaults(self):
        request = parse_payload('{"todos": [{"content": "Phase 1: a", "status": "pending"}]}')
        assert request.operation is Operation.UPDATE
        assert request.caller == "default"
        assert request.token is None
        assert request.todos[0].content == "Phase 1: a"

    def test_explicit_operation(self):
        request = parse_payload('{"todos": [], "operation": "add", "caller": "ide"}')
        assert request.operation is Operation.ADD
        assert request.caller == "ide"

    def test_invalid_json(self):
        with pytest.raises(PayloadError) as exc_info:
            parse_payload('{"todos": [')
        assert exc_info.value.line == 1

    @pytest.mark.parametrize(
        "raw",
        [
            "[]",
            "{}",
            '{"todos": "x"}',
            '{"todos": [], "operation": "archive"}',
            '{"todos": [{"content": 5}]}',
        ],
    )
    def test_wrong_shape(self, raw):
        with pytest.raises(PayloadError):
            parse_payload(raw)


class TestEnforcementHook:
    """Tests for the hook entry point."""

    def test_success(self, store: ArtifactStore):
        hook = EnforcementHook(store)
        raw = json.dumps({"todos": [{"content": "Phase 1: a", "status": "pending"}]})
        assert hook.handle(raw) == {"todos": [{"content": "Phase 1: a", "status": "pending"}]}

    def test_rule_failure(self, store: ArtifactStore):
        hook = EnforcementHook(store)
        raw = json.dumps({"todos": [{"content": "no prefix", "status": "pending"}]})
        response = hook.handle(raw)
        assert response["error"] == MISSING_PREFIX_MESSAGE
        assert response["todo"] == {"content": "no prefix", "status": "pending"}

    def test_operation_from_payload(self, store: ArtifactStore, write_artifact):
        write_artifact(Phase.PLAN, "20250816_100000_LOGIN.md")
        hook = EnforcementHook(store)
        raw = json.dumps({"todos": [{"content": "Phase 1: b"}], "operation": "add"})
        assert hook.handle(raw)["error"] == INCOMPLETE_PHASES_MESSAGE

    def test_unparsable_payload_raises(self, store: ArtifactStore):
        with pytest.raises(PayloadError):
            EnforcementHook(store).handle("not json")

    def test_rate_limited_response(self, store: ArtifactStore):
        guard = RequestGuard(limiter=FixedWindowRateLimiter(1, 60, clock=FakeClock()))
        hook = EnforcementHook(store, guard=guard)
        raw = json.dumps({"todos": []})
        assert hook.handle(raw) == {"todos": []}
        response = hook.handle(raw)
        assert response["error"] == "Rate limit exceeded"
        assert response["details"]["caller"] == "default"

    def test_token_required_once_issued(self, store: ArtifactStore):
        guard = RequestGuard(limiter=FixedWindowRateLimiter(10, 60))
        hook = EnforcementHook(store, guard=guard)
        guard.token.generate()
        assert "error" in hook.handle(json.dumps({"todos": []}))
        value = guard.token.generate()
        assert hook.handle(json.dumps({"todos": [], "token": value})) == {"todos": []}

    def test_guard_lifetime_is_the_hook_instance(self, temp_dir: Path, plans_root: Path):
        """Counters span calls on one hook, never across hooks built from settings."""
        settings = CascadeSettings(project_dir=temp_dir, rate_limit="1/minute")
        raw = json.dumps({"todos": []})

        long_lived = EnforcementHook.from_settings(settings)
        assert long_lived.handle(raw) == {"todos": []}
        assert long_lived.handle(raw)["error"] == "Rate limit exceeded"

        assert EnforcementHook.from_settings(settings).handle(raw) == {"todos": []}
        assert EnforcementHook.from_settings(settings).handle(raw) == {"todos": []}
