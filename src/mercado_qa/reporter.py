"""Run reporters.

Reporters receive events from the runner as steps finish. They only
observe: a reporter cannot change the outcome of a step.
"""

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .results import RunSummary, ScenarioResult, StepResult, StepStatus
from .shared.logging import get_logger

if TYPE_CHECKING:
    from .scenario import Scenario

STATUS_MARKS = {
    StepStatus.PASSED: "[green]✓[/green]",
    StepStatus.FAILED: "[red]✗[/red]",
    StepStatus.SKIPPED: "[yellow]-[/yellow]",
}


class Reporter:
    """Base reporter; every hook is a no-op."""

    def scenario_started(self, scenario: "Scenario") -> None:
        pass

    def step_finished(self, scenario: "Scenario", result: StepResult) -> None:
        pass

    def scenario_finished(self, scenario: "Scenario", result: ScenarioResult) -> None:
        pass

    def run_finished(self, summary: RunSummary) -> None:
        pass


class ConsoleReporter(Reporter):
    """Per-step pass/fail lines followed by a summary table."""

    def __init__(self, console: Console | None = None, show_paths: bool = True):
        self.console = console or Console()
        self.show_paths = show_paths

    def scenario_started(self, scenario: "Scenario") -> None:
        self.console.print(f"\n[bold]{escape(scenario.name)}[/bold]", highlight=False)
        if scenario.description:
            self.console.print(f"[dim]{escape(scenario.description)}[/dim]", highlight=False)

    def step_finished(self, scenario: "Scenario", result: StepResult) -> None:
        line = f"  {STATUS_MARKS[result.status]} {escape(result.name)}"
        if self.show_paths:
            line += f" [dim]({result.method} {escape(result.path)})[/dim]"
        if result.status is not StepStatus.SKIPPED:
            line += f" [dim]{result.elapsed * 1000:.0f}ms[/dim]"
        self.console.print(line, highlight=False)
        if result.error:
            self.console.print(
                f"      {result.message}", style="red", markup=False, highlight=False
            )

    def run_finished(self, summary: RunSummary) -> None:
        table = Table(title="Summary")
        table.add_column("Scenario")
        table.add_column("Passed", justify="right", style="green")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("Skipped", justify="right", style="yellow")
        table.add_column("Time", justify="right")
        for result in summary.scenarios:
            table.add_row(
                result.name,
                str(result.passed),
                str(result.failed),
                str(result.skipped),
                f"{result.elapsed:.2f}s",
            )
        self.console.print()
        self.console.print(table)

        if summary.ok:
            self.console.print(f"[green]All {summary.total} steps passed[/green]")
        else:
            self.console.print(
                f"[red]{summary.failed} failed, {summary.skipped} skipped "
                f"of {summary.total} steps[/red]"
            )


class JsonReporter(Reporter):
    """Writes the run summary to a JSON file when the run finishes."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def run_finished(self, summary: RunSummary) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(summary.to_dict(), f, indent=2, ensure_ascii=False, default=str)


class LogReporter(Reporter):
    """Emits one structlog event per step and per run."""

    def __init__(self, logger: Any = None):
        self.logger = logger or get_logger("mercado_qa.report")

    def step_finished(self, scenario: "Scenario", result: StepResult) -> None:
        self.logger.info(
            "step_finished",
            scenario=scenario.name,
            step=result.name,
            status=result.status.value,
            expected_status=result.expected_status,
            actual_status=result.actual_status,
            error=result.message or None,
        )

    def run_finished(self, summary: RunSummary) -> None:
        self.logger.info(
            "run_finished",
            total=summary.total,
            passed=summary.passed,
            failed=summary.failed,
            skipped=summary.skipped,
        )
