"""Build reporting for the command line.

The BuildReporter turns a SiteBuildResult into a BuildSummary and prints it.
Progress is not reported while units are running: units report nothing but
their outcome, which is collected after every task has finished.
"""

import json
from dataclasses import asdict

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from coursesite.cli.build_data_classes import BuildSummary
from coursesite.core.scheduler import UnitOutcome, UnitStatus
from coursesite.core.site_builder import SiteBuildResult

OUTPUT_MODES = ["default", "quiet", "json"]

_STATUS_STYLES = {
    UnitStatus.BUILT: "green",
    UnitStatus.UP_TO_DATE: "dim",
    UnitStatus.SKIPPED: "yellow",
    UnitStatus.FAILED: "red",
}


class BuildReporter:
    """Displays the summary of a site build."""

    def __init__(self, output_mode: str = "default", console: Console | None = None):
        self.output_mode = output_mode.lower()
        self.console = console or Console(stderr=True)
        self.summaries: list[BuildSummary] = []

    def show_build_start(self, project_root: str, num_units: int) -> None:
        if self.output_mode != "default":
            return
        self.console.print(f"[bold]Building site[/bold] in {project_root} ({num_units} units)")

    def report(self, result: SiteBuildResult, duration: float) -> BuildSummary:
        summary = BuildSummary.from_result(result, duration)
        self.summaries.append(summary)

        if self.output_mode == "json":
            print(json.dumps(asdict(summary), indent=2))
        elif self.output_mode == "quiet":
            self._show_problems(summary)
        else:
            self.show_outcomes(result.outcomes)
            self.show_summary(summary)
        return summary

    def show_outcomes(self, outcomes: list[UnitOutcome]) -> None:
        built = [o for o in outcomes if o.status != UnitStatus.UP_TO_DATE]
        if not built:
            return
        table = Table(show_header=True, header_style="bold")
        table.add_column("Unit")
        table.add_column("Kind")
        table.add_column("Status")
        for outcome in built:
            style = _STATUS_STYLES[outcome.status]
            table.add_row(
                outcome.slug,
                outcome.unit.kind.value,
                f"[{style}]{outcome.status.value}[/{style}]",
            )
        self.console.print(table)

    def show_summary(self, summary: BuildSummary) -> None:
        if summary.has_errors():
            status_symbol, status_color, status_text = "✗", "red", "with errors"
        else:
            status_symbol, status_color, status_text = "✓", "green", "successfully"

        self.console.print(
            f"\n[bold {status_color}]{status_symbol} Build completed {status_text}"
            f"[/bold {status_color}] in {summary.duration:.1f}s\n"
        )
        self.console.print("[bold]Summary:[/bold]")
        for name, count in summary.counts.items():
            self.console.print(f"  {count} {name}")
        if summary.syllabus_status:
            self.console.print(f"  syllabus: {summary.syllabus_status}")
        self.console.print(f"  [yellow]{len(summary.warnings)} warnings[/yellow]")
        self._show_problems(summary)

    def _show_problems(self, summary: BuildSummary) -> None:
        for error in summary.errors:
            self.console.print(f"[red]{escape(str(error))}[/red]")
        for warning in summary.warnings:
            self.console.print(f"[yellow]warning:[/yellow] {escape(str(warning))}")
