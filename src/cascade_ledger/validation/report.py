"""
Three-phase validation run and report formatting.

``validate_phases`` checks the most recent document of each phase and
their consistency; ``format_report`` turns the result into markdown and
``print_report`` shows it on a rich console.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field
from rich.console import Console
from rich.markup import escape

from cascade_ledger.artifacts.models import Artifact, Phase
from cascade_ledger.artifacts.store import ArtifactStore
from cascade_ledger.core.exceptions import ArtifactStoreError
from cascade_ledger.validation.content import (
    CheckResult,
    check_cross_phase_consistency,
    check_execution_record,
    check_plan,
    check_verification,
)

logger = logging.getLogger(__name__)

PHASE_TITLES = {
    Phase.PLAN: "Phase 1: Pre-Execution Plan",
    Phase.EXECUTION: "Phase 2: Post-Execution Record",
    Phase.VERIFICATION: "Phase 3: Delta Verification",
}

PHASE_CHECKS = {
    Phase.PLAN: check_plan,
    Phase.EXECUTION: check_execution_record,
    Phase.VERIFICATION: check_verification,
}


class PhaseResult(BaseModel):
    """Validation state of one phase."""

    phase: Phase
    exists: bool = False
    is_valid: bool = False
    issues: list[str] = Field(default_factory=list)
    path: Path | None = None

    def add_issue(self, issue: str) -> None:
        self.issues.append(issue)
        self.is_valid = False


class ValidationReport(BaseModel):
    """Validation state of all three phases."""

    phases: dict[Phase, PhaseResult]

    @property
    def is_valid(self) -> bool:
        return all(result.is_valid for result in self.phases.values())

    @property
    def completed(self) -> int:
        return sum(1 for result in self.phases.values() if result.is_valid)

    @property
    def completion_percentage(self) -> int:
        return round(self.completed / len(self.phases) * 100)


def most_recent(store: ArtifactStore, phase: Phase) -> Artifact | None:
    """
    Newest document of a phase by modification time, ties broken by name.

    Execution and verification documents must carry their phase marker.
    """
    marker = phase.marker
    candidates = [
        artifact
        for artifact in store.list_artifacts(phase)
        if marker is None or artifact.parsed.phase_suffix == marker
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda a: (a.modified_at or 0.0, a.filename))


def _missing_message(store: ArtifactStore, phase: Phase) -> str:
    kind = {
        Phase.PLAN: "Phase 1 plan",
        Phase.EXECUTION: "Phase 2 execution record",
        Phase.VERIFICATION: "Phase 3 verification",
    }[phase]
    return f"No {kind} found in {store.phase_dir(phase)}/"


def validate_phases(store: ArtifactStore) -> ValidationReport:
    """
    Validate the most recent document of each phase.

    A missing phase only reports an issue when the previous phase exists.
    Cross-phase issues naming a phase are attached to it; others go to
    all three.
    """
    report = ValidationReport(phases={phase: PhaseResult(phase=phase) for phase in Phase})

    if not store.exists():
        report.phases[Phase.PLAN].issues.append(f"Plans directory not found: {store.root}")
        return report

    contents: dict[Phase, str] = {}
    latest: dict[Phase, Artifact] = {}
    previous_exists = True

    for phase in Phase:
        result = report.phases[phase]
        artifact = most_recent(store, phase)
        if artifact is None:
            if previous_exists:
                result.issues.append(_missing_message(store, phase))
            previous_exists = False
            continue

        result.exists = True
        result.path = artifact.path
        previous_exists = True
        try:
            content = store.read_content(artifact.path)
        except ArtifactStoreError as e:
            result.issues.append(f"Error reading or parsing file: {e.message}")
            continue
        if content is None:
            result.issues.append(f"Error reading or parsing file: {artifact.path} disappeared")
            continue

        check: CheckResult = PHASE_CHECKS[phase](content)
        result.issues.extend(check.issues)
        result.is_valid = check.is_valid
        contents[phase] = content
        latest[phase] = artifact

    if len(contents) == len(Phase):
        cross = check_cross_phase_consistency(
            latest[Phase.PLAN].filename,
            contents[Phase.PLAN],
            latest[Phase.EXECUTION].filename,
            latest[Phase.VERIFICATION].filename,
            contents[Phase.VERIFICATION],
        )
        for issue in cross.issues:
            if "Phase 2" in issue:
                report.phases[Phase.EXECUTION].add_issue(issue)
            elif "Phase 3" in issue:
                report.phases[Phase.VERIFICATION].add_issue(issue)
            else:
                for result in report.phases.values():
                    result.add_issue(issue)

    logger.info(
        "Phase validation finished",
        extra={
            "event": "phases_validated",
            "valid": report.is_valid,
            "completed": report.completed,
        },
    )
    return report


def _status_label(result: PhaseResult) -> str:
    if not result.exists:
        return "❌ Missing"
    if result.is_valid:
        return "✅ Complete"
    return "⚠️ Issues Found"


def _format_phase(result: PhaseResult) -> str:
    lines = [f"#### {PHASE_TITLES[result.phase]}", f"- Status: {_status_label(result)}"]
    if result.path:
        lines.append(f"- File: `{result.path}`")
    if result.issues:
        lines.append("- Issues:")
        lines.extend(f"  - {issue}" for issue in result.issues)
    return "\n".join(lines) + "\n\n"


def _format_actions(result: PhaseResult) -> str:
    number = result.phase.number
    lines = []
    if not result.exists:
        suffix = f"_{result.phase.marker}" if result.phase.marker else ""
        lines.append(
            f"- **Create Phase {number} file** in `.claude/plans/{result.phase.dir_name}/` directory"
        )
        lines.append(f"  - Use filename format: `YYYYMMDD_HHMMSS_PLAN_NAME{suffix}.md`")
    if result.issues:
        lines.append(f"- **Fix issues in Phase {number}**:")
        lines.extend(f"  - {issue}" for issue in result.issues)
    return "".join(line + "\n" for line in lines)


def format_report(report: ValidationReport) -> str:
    """Markdown validation report."""
    total = len(report.phases)
    parts = [
        "## Cascade Validation Report\n\n",
        "### Overall Status: ✅ READY TO MERGE\n\n"
        if report.is_valid
        else "### Overall Status: ❌ NOT READY\n\n",
        f"**Completion**: {report.completion_percentage}% "
        f"({report.completed}/{total} phases)\n\n",
    ]
    parts.extend(_format_phase(report.phases[phase]) for phase in Phase)

    if report.is_valid:
        parts.append(
            "### 🎉 Congratulations!\n\n"
            "All phases are complete and validated. This PR is ready to be merged.\n\n"
        )
    else:
        parts.append("### Required Actions\n\n")
        parts.extend(
            _format_actions(report.phases[phase])
            for phase in Phase
            if not report.phases[phase].is_valid
        )
    return "".join(parts)


def print_report(report: ValidationReport, console: Console | None = None) -> None:
    """Show the report on a rich console."""
    console = console or Console()
    console.print("\n[bold blue]Cascade Validation Report[/bold blue]")
    console.print("-" * 40)

    overall = (
        "[bold green]✅ READY TO MERGE[/bold green]"
        if report.is_valid
        else "[bold red]❌ NOT READY[/bold red]"
    )
    console.print(f"Overall Status: {overall}")
    console.print(
        f"Completion: {report.completion_percentage}% "
        f"({report.completed}/{len(report.phases)} phases)\n"
    )

    colors = {"❌": "red", "✅": "green", "⚠": "yellow"}
    for phase in Phase:
        result = report.phases[phase]
        label = _status_label(result)
        color = colors[label[0]]
        console.print(f"[bold]{PHASE_TITLES[phase]}[/bold]: [{color}]{label}[/{color}]")
        if result.path:
            console.print(f"File: [blue]{escape(str(result.path))}[/blue]", highlight=False)
        if result.issues:
            console.print("Issues:")
            for issue in result.issues:
                console.print(f"  - [yellow]{escape(issue)}[/yellow]", highlight=False)
        console.print("")
