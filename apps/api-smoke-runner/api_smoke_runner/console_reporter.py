"""Console reporter with environment detection for smoke run output."""

from __future__ import annotations

import json
import os
import sys
from typing import Optional, TextIO

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table
from rich.text import Text

from .models import ScenarioResult, StepResult, StepStatus
from .output_config import OutputFormat
from .scenario import Step

_CI_ENV_VARS = ("CI", "JENKINS_HOME", "GITLAB_CI", "TRAVIS", "GITHUB_ACTIONS")

_ICONS = {
    StepStatus.PASSED: ("✓", "PASS", "green"),
    StepStatus.FAILED: ("✗", "FAIL", "red"),
    StepStatus.SKIPPED: ("-", "SKIP", "yellow"),
}


class ConsoleReporter:
    """
    Result sink that adapts to the environment.

    - Interactive terminals get a live rich table with a progress bar
    - CI/CD environments and pipes get plain text
    - ``json`` prints one JSON document per step plus a summary line
    """

    def __init__(self, output_format: OutputFormat = OutputFormat.AUTO, stream: Optional[TextIO] = None):
        self.output_format = output_format
        self.stream = stream
        self.use_rich = self._detect_rich()
        self.console: Optional[Console] = Console(file=stream) if self.use_rich else None
        self.progress: Optional[Progress] = None
        self.progress_task: Optional[TaskID] = None
        self.live: Optional[Live] = None
        self.results_table: Optional[Table] = None

    def _detect_rich(self) -> bool:
        if self.output_format == OutputFormat.RICH:
            return True
        if self.output_format in (OutputFormat.PLAIN, OutputFormat.JSON):
            return False
        is_terminal = (self.stream or sys.stdout).isatty()
        is_ci = any(name in os.environ for name in _CI_ENV_VARS)
        return is_terminal and not is_ci

    def _print(self, text: str = "", end: str = "\n") -> None:
        print(text, end=end, file=self.stream or sys.stdout, flush=True)

    def start(self, scenario_id: str, total_steps: int) -> None:
        if self.output_format == OutputFormat.JSON:
            self._print(json.dumps({"event": "run_started", "scenario": scenario_id, "total_steps": total_steps}))
            return
        if self.use_rich:
            self.results_table = Table(show_header=True, header_style="bold cyan")
            self.results_table.add_column("#", style="dim", width=4)
            self.results_table.add_column("Step", width=26)
            self.results_table.add_column("Request", width=44)
            self.results_table.add_column("Status", width=8)
            self.results_table.add_column("Detail")
            self.progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("{task.completed}/{task.total}"),
                console=self.console,
            )
            self.progress_task = self.progress.add_task(f"[cyan]Running {scenario_id}", total=total_steps)
            self.live = Live(Group(self.progress, self.results_table), console=self.console, refresh_per_second=4)
            self.live.start()
        else:
            self._print(f"Running test scenario: {scenario_id}")
            self._print(f"Total steps: {total_steps}")
            self._print("-" * 80)

    def step_started(self, index: int, step: Step, path: str) -> None:
        if self.output_format == OutputFormat.JSON or self.use_rich:
            return
        self._print(f"[{index}] {step.method} {path} ... ", end="")

    def step_finished(self, result: StepResult) -> None:
        icon, label, color = _ICONS[result.status]
        if self.output_format == OutputFormat.JSON:
            self._print(result.model_dump_json())
            return
        if self.use_rich:
            assert self.results_table is not None and self.progress is not None
            self.results_table.add_row(
                str(result.index),
                result.name,
                f"{result.method} {result.path}",
                Text(f"{icon} {label}", style=color),
                Text(result.detail or "", style="red" if result.status is StepStatus.FAILED else "dim"),
            )
            if self.progress_task is not None:
                self.progress.update(self.progress_task, advance=1)
            return
        if result.status is StepStatus.SKIPPED:
            # skipped steps never printed a request line
            self._print(f"[{result.index}] {result.name} ... ", end="")
        suffix = f" ({result.duration_ms:.0f}ms)" if result.status is not StepStatus.SKIPPED else ""
        self._print(f"{icon} {label}{suffix}")
        if result.detail:
            prefix = "Error: " if result.status is StepStatus.FAILED else ""
            self._print(f"  {prefix}{result.detail}")

    def finish(self, summary: ScenarioResult) -> None:
        if self.output_format == OutputFormat.JSON:
            self._print(
                json.dumps(
                    {
                        "event": "run_finished",
                        "total": summary.total,
                        "passed": summary.passed,
                        "failed": summary.failed,
                        "skipped": summary.skipped,
                        "halted_by": summary.halted_by,
                        "duration_ms": summary.duration_ms,
                    }
                )
            )
            return

        ok = summary.failed == 0 and not summary.halted
        status = "✓ ALL STEPS PASSED" if ok else "✗ SOME STEPS FAILED"
        if summary.halted:
            status = f"✗ RUN HALTED: {summary.halted_by} failed"

        if self.use_rich:
            assert self.console is not None
            self.close()
            summary_text = Text()
            summary_text.append(f"Total: {summary.total}  ", style="bold")
            summary_text.append(f"Passed: {summary.passed}  ", style="bold green")
            summary_text.append(f"Failed: {summary.failed}  ", style="bold red" if summary.failed else "bold green")
            summary_text.append(f"Skipped: {summary.skipped}  ", style="bold yellow")
            summary_text.append(f"Duration: {summary.duration_ms:.0f}ms", style="bold cyan")
            self.console.print()
            self.console.print(
                Panel(
                    summary_text,
                    title=Text(status, style="bold green" if ok else "bold red"),
                    border_style="green" if ok else "red",
                )
            )
            return

        self._print("-" * 80)
        self._print(
            f"Total: {summary.total} | Passed: {summary.passed} | Failed: {summary.failed} "
            f"| Skipped: {summary.skipped} | Duration: {summary.duration_ms:.0f}ms"
        )
        self._print(status)

    def close(self) -> None:
        if self.live is not None:
            self.live.stop()
            self.live = None

    def print_error(self, message: str) -> None:
        if self.console is not None:
            self.console.print(f"[bold red]Error:[/] {message}")
        else:
            print(f"Error: {message}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        if self.console is not None:
            self.console.print(f"[cyan]{message}[/]")
        elif self.output_format != OutputFormat.JSON:
            self._print(message)
