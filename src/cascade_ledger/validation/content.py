"""
Content checks for phase documents.

Each check takes document text and returns a ``CheckResult`` listing the
problems found. Checks never raise on malformed text.
"""

import re

from pydantic import BaseModel, Field

from cascade_ledger.artifacts import filenames

PLAN_SECTIONS = ("Objective", "Detailed Steps", "Success Criteria")
EXECUTION_SECTIONS = ("What Was Executed", "Results Achieved", "Deviations from Plan")
VERIFICATION_SECTIONS = (
    "Verification Tests Performed",
    "Success Criteria Assessment",
    "Final Status",
)

PLAN_MIN_LENGTH = 500
EXECUTION_MIN_LENGTH = 300
FINAL_STATUS_KEYWORDS = ("PASS", "FAIL", "COMPLETE", "INCOMPLETE")

NUMBERED_STEP = re.compile(r"^\d+\.\s+.+", re.MULTILINE)
LIST_ITEM = re.compile(r"^[-*]\s+.+", re.MULTILINE)
MEASURABLE_METRIC = re.compile(
    r"\d+%|\d+\s*(?:seconds|minutes|hours|ms|tests|users)|\b\d+/\d+\b"
)


class CheckResult(BaseModel):
    """Outcome of one content check."""

    issues: list[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues


def _section_pattern(name: str) -> re.Pattern:
    return re.compile(
        rf"^##[ \t]+{re.escape(name)}\b[^\n]*\n(.*?)(?=^##\s|\Z)",
        re.IGNORECASE | re.MULTILINE | re.DOTALL,
    )


def extract_section(content: str, name: str) -> str | None:
    """Body of the ``## <name>`` section up to the next level-2 heading."""
    match = _section_pattern(name).search(content)
    return match.group(1).strip() if match else None


def find_missing_sections(content: str, sections: tuple[str, ...]) -> list[str]:
    """Required sections with no ``## <name>`` heading."""
    return [
        name
        for name in sections
        if not re.search(rf"^##[ \t]+{re.escape(name)}\b", content, re.IGNORECASE | re.MULTILINE)
    ]


def has_numbered_steps(content: str) -> bool:
    return bool(NUMBERED_STEP.search(content))


def has_list_items(content: str) -> bool:
    return bool(LIST_ITEM.search(content))


def has_measurable_metrics(content: str) -> bool:
    """Percentages, counted units, or ratios like 3/4."""
    return bool(MEASURABLE_METRIC.search(content))


def count_list_items(content: str) -> int:
    return len(LIST_ITEM.findall(content))


def _missing_sections_issue(content: str, sections: tuple[str, ...]) -> list[str]:
    missing = find_missing_sections(content, sections)
    if missing:
        return [f"Missing required sections: {', '.join(missing)}"]
    return []


def check_plan(content: str) -> CheckResult:
    """Check a Phase 1 plan."""
    issues = _missing_sections_issue(content, PLAN_SECTIONS)

    if len(content) < PLAN_MIN_LENGTH:
        issues.append("Plan content is too brief. Add more detail to meet quality standards.")

    if not has_numbered_steps(content):
        issues.append("No numbered implementation steps found. Add step-by-step instructions.")

    criteria = extract_section(content, "Success Criteria")
    if criteria:
        if not has_measurable_metrics(criteria):
            issues.append(
                "No measurable metrics found in Success Criteria. Add quantifiable targets."
            )
        if not has_list_items(criteria):
            issues.append("Success Criteria should be formatted as a list with bullet points.")

    return CheckResult(issues=issues)


def check_execution_record(content: str) -> CheckResult:
    """Check a Phase 2 execution record."""
    issues = _missing_sections_issue(content, EXECUTION_SECTIONS)

    if len(content) < EXECUTION_MIN_LENGTH:
        issues.append(
            "Execution record is too brief. Add more detail about what was implemented."
        )

    executed = extract_section(content, "What Was Executed")
    if executed and not has_numbered_steps(executed) and not has_list_items(executed):
        issues.append("What Was Executed section should contain numbered steps or bullet points.")

    results = extract_section(content, "Results Achieved")
    if results and not has_list_items(results) and not has_numbered_steps(results):
        issues.append("Results Achieved section should detail outcomes as a list.")

    return CheckResult(issues=issues)


def check_verification(content: str) -> CheckResult:
    """Check a Phase 3 verification."""
    issues = _missing_sections_issue(content, VERIFICATION_SECTIONS)

    tests = extract_section(content, "Verification Tests Performed")
    if tests:
        if "Command/Action:" not in tests and "Test:" not in tests:
            issues.append(
                "No specific verification tests documented. "
                "Add actual test commands or procedures."
            )
        if "Expected Result:" not in tests and "Actual Result:" not in tests:
            issues.append("Verification tests should include expected and actual results.")

    assessment = extract_section(content, "Success Criteria Assessment")
    if assessment and not has_measurable_metrics(assessment):
        issues.append("Success Criteria Assessment should include quantitative results.")

    final_status = extract_section(content, "Final Status")
    if final_status and not any(word in final_status for word in FINAL_STATUS_KEYWORDS):
        issues.append(
            "Final Status should clearly indicate PASS/FAIL or COMPLETE/INCOMPLETE status."
        )

    return CheckResult(issues=issues)


def check_cross_phase_consistency(
    plan_name: str,
    plan_content: str,
    execution_name: str,
    verification_name: str,
    verification_content: str,
) -> CheckResult:
    """
    Check that three phase documents describe the same unit of work.

    Identifiers must agree, and the verification assessment must have at
    least as many list items as the plan's success criteria.
    """
    issues = []
    plan_id = filenames.parse(plan_name).identifier
    execution_id = filenames.parse(execution_name).identifier
    verification_id = filenames.parse(verification_name).identifier

    if execution_id != plan_id:
        issues.append(
            f"Phase 2 execution record ({execution_id}) does not match "
            f"Phase 1 plan name ({plan_id})."
        )
    if verification_id != plan_id:
        issues.append(
            f"Phase 3 verification ({verification_id}) does not match "
            f"Phase 1 plan name ({plan_id})."
        )

    criteria = extract_section(plan_content, "Success Criteria")
    assessment = extract_section(verification_content, "Success Criteria Assessment")
    if criteria and assessment:
        planned = count_list_items(criteria)
        assessed = count_list_items(assessment)
        if assessed < planned:
            issues.append(
                f"Not all success criteria from Phase 1 ({planned} points) "
                f"are assessed in Phase 3 ({assessed} points)."
            )

    return CheckResult(issues=issues)
