"""Click CLI for diag-bundle.

Commands:
- collect: Collect diagnostics into a workspace and package it
- catalog: List the default collection catalog
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from diag_bundle import __version__
from diag_bundle.diagnostics.logger import AuditLog, setup_logging
from diag_bundle.models import CollectionOptions, RunReport, TaskStatus, build_default_catalog
from diag_bundle.pipeline import CollectionPipeline
from diag_bundle.utils.errors import PackagingError, WorkspaceCreationError
from diag_bundle.workspace import DEFAULT_PREFIX

console = Console()
logger = logging.getLogger(__name__)

# Default output root
DEFAULT_OUTPUT_ROOT = "."

_STATUS_STYLES = {
    TaskStatus.COLLECTED: "green",
    TaskStatus.NOT_FOUND: "dim",
    TaskStatus.SKIPPED: "cyan",
    TaskStatus.FAILED: "red",
}


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug logging",
)
@click.pass_context
def cli(ctx, debug: bool):
    """diag-bundle - Collect host diagnostics into a single archive."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    level = "DEBUG" if debug else "WARNING"
    setup_logging(level=level)


@cli.command()
@click.option(
    "--output-root",
    "-o",
    envvar="DIAG_BUNDLE_OUTPUT_ROOT",
    default=DEFAULT_OUTPUT_ROOT,
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory that receives the workspace and the bundle",
)
@click.option("--prefix", default=DEFAULT_PREFIX, show_default=True, help="Workspace name prefix")
@click.option(
    "--skip-merged-update-log",
    is_flag=True,
    help="Do not generate the merged Windows Update log",
)
@click.option(
    "--skip-diagnostic-bundle",
    is_flag=True,
    help="Do not run the optional diagnostic bundle tool",
)
@click.option("--quiet", "-q", is_flag=True, help="Only print the bundle path")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds before an external command is abandoned (default: wait forever)",
)
@click.pass_context
def collect(
    ctx,
    output_root: Path,
    prefix: str,
    skip_merged_update_log: bool,
    skip_diagnostic_bundle: bool,
    quiet: bool,
    timeout: Optional[float],
):
    """Collect diagnostics and package them into a bundle."""
    options = CollectionOptions(
        include_merged_update_log=not skip_merged_update_log,
        include_optional_diagnostic_bundle=not skip_diagnostic_bundle,
        verbose_console=not quiet,
        command_timeout=timeout,
    )
    audit = AuditLog(quiet=quiet, console=console)
    pipeline = CollectionPipeline(
        output_root,
        options,
        catalog=build_default_catalog(),
        audit=audit,
        prefix=prefix,
    )

    try:
        result = pipeline.run()
    except (WorkspaceCreationError, PackagingError) as e:
        console.print(f"[bold red]Collection failed:[/] {escape(str(e))}")
        sys.exit(1)

    if not quiet:
        _print_summary(result.report)
        console.print(f"[bold green]Bundle ready:[/] {escape(str(result.bundle_path))}")

    # The bundle path is the command's output, printed even when quiet
    click.echo(str(result.bundle_path))


@cli.command()
def catalog():
    """List the default collection catalog."""
    tasks = build_default_catalog()

    table = Table(title=f"Collection Catalog ({len(tasks)} tasks)")
    table.add_column("Name")
    table.add_column("Kind", style="dim")
    table.add_column("Source")
    table.add_column("Destination")
    table.add_column("Optional", justify="center")

    for task in tasks:
        source = task.source if isinstance(task.source, str) else " ".join(task.source)
        table.add_row(
            task.name,
            task.kind.value,
            escape(source),
            task.destination,
            "yes" if task.skip_if else "",
        )

    console.print(table)


def _print_summary(report: RunReport) -> None:
    """Show tasks that were not collected, then the status counts."""
    problems = [o for o in report.outcomes if o.status != TaskStatus.COLLECTED]
    if problems:
        table = Table(title="Not collected")
        table.add_column("Task")
        table.add_column("Status")
        table.add_column("Detail")
        for outcome in problems:
            style = _STATUS_STYLES[outcome.status]
            status = outcome.status.value
            if outcome.reason and outcome.status == TaskStatus.FAILED:
                status = f"{status} ({outcome.reason})"
            table.add_row(outcome.task_name, f"[{style}]{status}[/]", escape(outcome.detail))
        console.print(table)

    counts = report.counts()
    console.print(
        "  ".join(
            f"[{_STATUS_STYLES[TaskStatus(status)]}]{status}: {count}[/]"
            for status, count in counts.items()
        )
    )


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
