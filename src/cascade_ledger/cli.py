"""
Cascade Ledger CLI - Command-line interface.

Show unit-of-work status, render phase documents, validate the three
phases, and run the todo enforcement hook.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cascade_ledger.artifacts.filenames import display_name
from cascade_ledger.artifacts.models import MatchGroup, Phase, Status
from cascade_ledger.artifacts.status import collect_match_groups, status_counts
from cascade_ledger.artifacts.store import ArtifactStore
from cascade_ledger.core.config import ENFORCER_LOG_NAME, CascadeSettings
from cascade_ledger.core.exceptions import CascadeError, PayloadError, format_exception
from cascade_ledger.core.logging import attach_file_handler, configure_logging
from cascade_ledger.enforcement.hook import EnforcementHook
from cascade_ledger.rendering.markdown import MarkdownRenderer, render_document
from cascade_ledger.rendering.sanitizer import Sanitizer
from cascade_ledger.validation.report import format_report, print_report, validate_phases

app = typer.Typer(
    name="cascade-ledger",
    help="Cascade Ledger - Three-Phase Work Artifact Tracking",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger(__name__)

STATUS_STYLES = {
    Status.VERIFIED: "green",
    Status.EXECUTED: "cyan",
    Status.PLANNED: "yellow",
    Status.MISSING: "red",
}


def _load_settings() -> CascadeSettings:
    try:
        settings = CascadeSettings.from_env()
    except CascadeError as e:
        console.print(f"[red]Configuration error: {escape(format_exception(e))}[/red]")
        raise typer.Exit(1)
    configure_logging(settings.log_level)
    return settings


def _store(settings: CascadeSettings, root: Optional[Path]) -> ArtifactStore:
    return ArtifactStore(root) if root else ArtifactStore.from_settings(settings)


def _group_payload(group: MatchGroup) -> dict:
    return {
        "identifier": group.identifier,
        "display_name": display_name(group.identifier),
        "status": group.status.value,
        "anomalous": group.is_anomalous,
        **{
            phase.name.lower(): str(group.get(phase).path) if group.get(phase) else None
            for phase in Phase
        },
    }


@app.command()
def status(
    root: Optional[Path] = typer.Argument(None, help="Plans root (default: project plans dir)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
):
    """Show the status of every unit of work."""
    settings = _load_settings()
    store = _store(settings, root)
    groups = collect_match_groups(store)

    if as_json:
        typer.echo(json.dumps([_group_payload(group) for group in groups], indent=2))
        return

    table = Table(title=f"Units of Work ({len(groups)})")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    for phase in Phase:
        table.add_column(phase.value, justify="center")
    table.add_column("Notes", style="dim")

    for group in groups:
        style = STATUS_STYLES[group.status]
        marks = ["[green]✓[/green]" if group.get(phase) else "-" for phase in Phase]
        table.add_row(
            escape(display_name(group.identifier)),
            f"[{style}]{group.status.value}[/{style}]",
            *marks,
            "out of order" if group.is_anomalous else "",
        )

    console.print(table)
    counts = status_counts(groups)
    console.print(
        " | ".join(f"{s.value}: {counts[s]}" for s in sorted(Status, reverse=True)),
        highlight=False,
    )


@app.command()
def render(
    path: Path = typer.Argument(..., help="Phase document to render"),
    toc: bool = typer.Option(False, "--toc", "-t", help="Prepend a table of contents"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
):
    """Render a phase document to markup."""
    settings = _load_settings()
    sanitizer = Sanitizer()
    if settings.allow_unsafe_markup:
        sanitizer.set_bypass(True)

    view = render_document(path, renderer=MarkdownRenderer(sanitizer))
    markup = f"{view.toc_html}\n{view.body_html}" if toc else view.body_html

    if output:
        output.write_text(markup + "\n", encoding="utf-8")
        console.print(f"[green]Rendered[/green] {escape(view.title)} -> {escape(str(output))}")
    else:
        typer.echo(markup)


@app.command()
def validate(
    root: Optional[Path] = typer.Argument(None, help="Plans root (default: project plans dir)"),
    report: Optional[Path] = typer.Option(
        None, "--report", "-r", help="Write the markdown report to this file"
    ),
):
    """Validate the most recent document of each phase."""
    settings = _load_settings()
    result = validate_phases(_store(settings, root))

    print_report(result, console)
    if report:
        report.write_text(format_report(result), encoding="utf-8")
        console.print(f"Report written to {escape(str(report))}", highlight=False)

    if not result.is_valid:
        raise typer.Exit(1)


@app.command()
def enforce():
    """
    Run the todo enforcement hook.

    Reads one JSON payload from stdin and writes one JSON payload to
    stdout. Exits 1 if the payload cannot be parsed.

    Each invocation builds a fresh guard: the rate counter starts empty
    and no request token is issued, so neither limits a single run.
    Hosts that need them keep one ``EnforcementHook`` alive and call
    ``hook.guard.token.generate()`` before handing out a token.
    """
    settings = _load_settings()
    handler = None
    if settings.log_to_file:
        handler = attach_file_handler(settings.logs_dir / ENFORCER_LOG_NAME)

    try:
        result = EnforcementHook.from_settings(settings).handle(sys.stdin.read())
    except PayloadError as e:
        logger.error(
            f"Error processing todos: {e.message}", extra={"event": "payload_rejected"}
        )
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        if handler is not None:
            logging.getLogger("cascade_ledger").removeHandler(handler)
            handler.close()

    typer.echo(json.dumps(result))


@app.command()
def version():
    """Show Cascade Ledger version."""
    from cascade_ledger import __version__

    console.print(
        Panel.fit(f"[bold blue]Cascade Ledger[/bold blue] v{__version__}"),
    )


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
