"""
Cascade Ledger Exception Hierarchy.

Defines all custom exceptions used across the Cascade Ledger system.
Provides consistent error handling and debugging information.
"""

from typing import Any


class CascadeError(Exception):
    """
    Base exception for all Cascade Ledger errors.

    All custom exceptions inherit from this class, allowing
    generic catch blocks and consistent error handling.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        """
        Initialize a CascadeError.

        Args:
            message: Human-readable error message
            details: Optional structured data for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation with details."""
        base = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{base} ({details_str})"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CascadeError):
    """
    Errors in configuration loading or validation.

    Raised when:
    - Environment variables hold malformed values
    - Rate limit strings cannot be parsed
    - Log levels are unknown
    """

    def __init__(
        self,
        message: str,
        *,
        env_var: str | None = None,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a ConfigurationError.

        Args:
            message: Human-readable error message
            env_var: Environment variable name if applicable
            config_key: Configuration key if applicable
            details: Optional structured data for debugging
        """
        details = details or {}
        if env_var:
            details["env_var"] = env_var
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, details=details)
        self.env_var = env_var
        self.config_key = config_key


class ArtifactStoreError(CascadeError):
    """
    Raised when artifact content exists but cannot be read.

    A missing file is not an error (callers receive a placeholder);
    permission problems and decoding failures are.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if path:
            details["path"] = path

        super().__init__(message, details=details)
        self.path = path


class EnforcementError(CascadeError):
    """
    Raised when a todo record violates a phase enforcement rule.

    The message is user-facing; the offending record is kept so the
    hook can echo it back.
    """

    def __init__(
        self,
        message: str,
        *,
        rule: str | None = None,
        todo: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize an EnforcementError.

        Args:
            message: Human-readable error message
            rule: Name of the rule that rejected the record
            todo: The offending todo record
            details: Optional structured data for debugging
        """
        details = details or {}
        if rule:
            details["rule"] = rule

        super().__init__(message, details=details)
        self.rule = rule
        self.todo = todo


class PayloadError(CascadeError):
    """Raised when enforcement hook input cannot be parsed."""

    def __init__(
        self,
        message: str,
        *,
        line: int | None = None,
        column: int | None = None,
        position: int | None = None,
    ):
        details: dict[str, Any] = {}
        if line is not None:
            details["line"] = line
        if column is not None:
            details["column"] = column
        if position is not None:
            details["position"] = position

        super().__init__(message, details=details)
        self.line = line
        self.column = column
        self.position = position


class RateLimitExceededError(CascadeError):
    """Raised when a caller exceeds its request window."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        caller: str | None = None,
        retry_after: int | None = None,
    ):
        details: dict[str, Any] = {}
        if caller:
            details["caller"] = caller
        if retry_after is not None:
            details["retry_after_seconds"] = retry_after
        super().__init__(message, details=details)
        self.caller = caller
        self.retry_after = retry_after


class InvalidRequestTokenError(CascadeError):
    """Raised when a one-shot request token is missing, wrong, or reused."""

    def __init__(self, message: str = "Invalid request token"):
        super().__init__(message)


def format_exception(error: Exception) -> str:
    """
    Format an exception for user-friendly display.

    Args:
        error: The exception to format

    Returns:
        Formatted error message string
    """
    if isinstance(error, CascadeError):
        return str(error)
    return f"{error.__class__.__name__}: {error}"
