"""
Cascade Ledger - Three-Phase Work Artifact Tracking.

Tracks plan, execution and verification documents for units of work,
derives their completion status, renders them to sanitized markup, and
enforces the three-phase workflow on todo lists.
"""

__version__ = "0.1.0"

# Command line is available but not exported by default
# Import explicitly: from cascade_ledger.cli import app

__all__ = []
