"""
Cascade Ledger Core Module.

Provides configuration, logging setup and the exception hierarchy.
"""

__all__ = [
    # Configuration
    "CascadeSettings",
    "EnforcementConfig",
    "parse_rate_limit",
    # Exceptions
    "CascadeError",
    "ConfigurationError",
    "ArtifactStoreError",
    "EnforcementError",
    "PayloadError",
    "RateLimitExceededError",
    "InvalidRequestTokenError",
    "format_exception",
]

from cascade_ledger.core.config import CascadeSettings, EnforcementConfig, parse_rate_limit
from cascade_ledger.core.exceptions import (
    ArtifactStoreError,
    CascadeError,
    ConfigurationError,
    EnforcementError,
    InvalidRequestTokenError,
    PayloadError,
    RateLimitExceededError,
    format_exception,
)
