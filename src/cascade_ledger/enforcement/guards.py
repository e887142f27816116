"""
Request guards for the enforcement hook.

- ``FixedWindowRateLimiter``: per-caller request counter that resets
  when its window expires.
- ``RequestToken``: one-shot token; validating it consumes it.
- ``RequestGuard``: both, held together and passed into the hook.

All state lives on instances. Nothing here is shared through module
globals, so two guards never see each other's counters or tokens.
"""

import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from cascade_ledger.core.config import CascadeSettings, parse_rate_limit
from cascade_ledger.core.exceptions import InvalidRequestTokenError, RateLimitExceededError

logger = logging.getLogger(__name__)

DEFAULT_CALLER = "default"
TOKEN_BYTES = 32


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Fixed-window rate limiter keyed by caller.

    The first request of a caller opens a window of ``window_seconds``;
    up to ``max_requests`` requests are allowed inside it. A request after
    the window has expired opens a new one.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rate limiter.

        Args:
            max_requests: Maximum requests allowed per window
            window_seconds: Window length in seconds
            clock: Time source (monotonic seconds)
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_limit(cls, limit_str: str, **kwargs) -> "FixedWindowRateLimiter":
        """Build from a "<n>/<period>" string."""
        max_requests, window_seconds = parse_rate_limit(limit_str)
        return cls(max_requests, window_seconds, **kwargs)

    def is_allowed(self, key: str) -> bool:
        """Count one request for ``key`` and report whether it is allowed."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            if window is None or now > window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return True

            if window.count >= self.max_requests:
                return False

            window.count += 1
            return True

    def remaining(self, key: str) -> int:
        """Requests left for ``key`` in its current window."""
        with self._lock:
            window = self._windows.get(key)
            if window is None or self._clock() > window.reset_at:
                return self.max_requests
            return max(0, self.max_requests - window.count)

    def retry_after(self, key: str) -> int:
        """Seconds until the window of ``key`` resets (0 if open)."""
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return 0
            return max(0, int(window.reset_at - self._clock()) + 1)

    def reset(self, key: str | None = None) -> None:
        """Forget one caller's window, or all of them."""
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


class RequestToken:
    """Holds at most one issued token; a successful validation consumes it."""

    def __init__(self):
        self._token: str | None = None
        self._lock = threading.Lock()

    @property
    def issued(self) -> bool:
        return self._token is not None

    def generate(self) -> str:
        """Issue a fresh token, replacing any outstanding one."""
        with self._lock:
            self._token = secrets.token_hex(TOKEN_BYTES)
            return self._token

    def validate(self, token: str | None) -> bool:
        """True if ``token`` equals the outstanding one. Consumes it on success."""
        with self._lock:
            if self._token is None or not token:
                return False
            if not hmac.compare_digest(token, self._token):
                return False
            self._token = None
            return True


@dataclass
class RequestGuard:
    """Rate limiter plus optional one-shot token for one hook host."""

    limiter: FixedWindowRateLimiter
    token: RequestToken = field(default_factory=RequestToken)

    @classmethod
    def from_settings(cls, settings: CascadeSettings | None = None) -> "RequestGuard":
        settings = settings or CascadeSettings.from_env()
        max_requests, window_seconds = settings.rate_limit_window
        return cls(limiter=FixedWindowRateLimiter(max_requests, window_seconds))

    def check(self, caller: str | None = None, token: str | None = None) -> None:
        """
        Admit one request.

        Args:
            caller: Caller identity for the rate counter
            token: Request token; only checked when one has been issued

        Raises:
            InvalidRequestTokenError: If a token is outstanding and does not match
            RateLimitExceededError: If the caller's window is exhausted
        """
        caller = caller or DEFAULT_CALLER

        if self.token.issued and not self.token.validate(token):
            logger.warning(
                "Request token rejected",
                extra={"event": "token_rejected", "caller": caller},
            )
            raise InvalidRequestTokenError()

        if not self.limiter.is_allowed(caller):
            retry_after = self.limiter.retry_after(caller)
            logger.warning(
                f"Rate limit exceeded for {caller}",
                extra={"event": "rate_limit_exceeded", "caller": caller},
            )
            raise RateLimitExceededError(caller=caller, retry_after=retry_after)
