"""
Cascade Ledger Validation Module.

Content checks for phase documents and the three-phase validation
report.
"""

from .content import (
    CheckResult,
    check_cross_phase_consistency,
    check_execution_record,
    check_plan,
    check_verification,
    extract_section,
)
from .report import (
    PhaseResult,
    ValidationReport,
    format_report,
    most_recent,
    print_report,
    validate_phases,
)

__all__ = [
    "CheckResult",
    "check_plan",
    "check_execution_record",
    "check_verification",
    "check_cross_phase_consistency",
    "extract_section",
    "PhaseResult",
    "ValidationReport",
    "validate_phases",
    "format_report",
    "most_recent",
    "print_report",
]
