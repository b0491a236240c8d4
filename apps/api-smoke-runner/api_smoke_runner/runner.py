"""Scenario execution engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol, Sequence
import time
import uuid

import structlog

from .http_client import RequestClient
from .models import RunState, ScenarioResult, StepResult, StepStatus
from .scenario import SCENARIO_ID, Step

LOGGER = structlog.get_logger("api_smoke_runner.runner")


class ResultSink(Protocol):
    """Receives structured progress and results from a run."""

    def start(self, scenario_id: str, total_steps: int) -> None: ...

    def step_started(self, index: int, step: Step, path: str) -> None: ...

    def step_finished(self, result: StepResult) -> None: ...

    def finish(self, summary: ScenarioResult) -> None: ...

    def close(self) -> None: ...


class RunnerState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class ScenarioRunner:
    """Executes scenario steps in order, threading captured values forward."""

    def __init__(
        self,
        client: RequestClient,
        steps: Sequence[Step],
        *,
        sinks: Sequence[ResultSink] = (),
        scenario_id: str = SCENARIO_ID,
        run_id: str | None = None,
    ) -> None:
        self.client = client
        self.steps = tuple(steps)
        self.sinks = tuple(sinks)
        self.scenario_id = scenario_id
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.state = RunState()
        self.status = RunnerState.STOPPED
        self.halted_by: Optional[str] = None

    def run(self) -> ScenarioResult:
        self.state = RunState()
        self.status = RunnerState.RUNNING
        self.halted_by = None
        log = LOGGER.bind(scenario=self.scenario_id, run_id=self.run_id)
        log.info("run_started", base_url=self.client.base_url, total_steps=len(self.steps))

        started_at = datetime.now(timezone.utc)
        try:
            for sink in self.sinks:
                sink.start(self.scenario_id, len(self.steps))
            summary = self._run_steps(started_at, log)
        finally:
            self.status = RunnerState.STOPPED
            for sink in self.sinks:
                sink.close()
        return summary

    def _run_steps(self, started_at: datetime, log: Any) -> ScenarioResult:
        results: list[StepResult] = []
        for index, step in enumerate(self.steps, start=1):
            result = self._run_step(index, step, log)
            results.append(result)
            for sink in self.sinks:
                sink.step_finished(result)
            if step.fatal and result.status is StepStatus.FAILED:
                self.halted_by = step.name
                self.status = RunnerState.STOPPED
                log.error("run_halted", step=step.name, detail=result.detail)

        finished_at = datetime.now(timezone.utc)
        summary = ScenarioResult(
            scenario_id=self.scenario_id,
            base_url=self.client.base_url,
            run_id=self.run_id,
            started_at=started_at,
            finished_at=finished_at,
            duration_ms=round((finished_at - started_at).total_seconds() * 1000, 3),
            steps=results,
            final_state=self.state,
            halted_by=self.halted_by,
        )
        log.info(
            "run_finished",
            passed=summary.passed,
            failed=summary.failed,
            skipped=summary.skipped,
            halted_by=summary.halted_by,
        )
        for sink in self.sinks:
            sink.finish(summary)
        return summary

    def _run_step(self, index: int, step: Step, log: Any) -> StepResult:
        state = self.state
        path = step.render_path(state)

        if self.status is RunnerState.STOPPED:
            return self._skipped(index, step, path, f"not attempted: {self.halted_by} failed")
        missing = [name for name in step.skip_unless if not state.is_set(name)]
        if missing:
            log.info("step_skipped", step=step.name, missing=missing)
            return self._skipped(index, step, path, f"skipped: no {', '.join(missing)} captured")

        for sink in self.sinks:
            sink.step_started(index, step, path)
        log.debug("step_started", step=step.name, method=step.method, path=path)

        timer = time.perf_counter()
        credential = state.credential if step.auth else None
        outcome = self.client.send(path, step.method, step.build_body(state), credential)
        duration_ms = round((time.perf_counter() - timer) * 1000, 3)

        passed = step.evaluate(outcome)
        if passed:
            captured, absent = step.extract(outcome)
            if absent:
                log.warning("extraction_miss", step=step.name, fields=absent)
            self.state = state.merge(captured)
            detail = _with_captured(step.describe(outcome.envelope), captured)
        elif outcome.success:
            _, absent = step.extract(outcome)
            if absent:
                detail = "response missing " + ", ".join(step.produces[name] for name in absent)
            else:
                detail = f"unexpected response (HTTP {outcome.status_code})"
        else:
            detail = outcome.error_detail()

        log.info(
            "step_finished",
            step=step.name,
            status_code=outcome.status_code,
            passed=passed,
            duration_ms=duration_ms,
        )
        return StepResult(
            index=index,
            name=step.name,
            method=step.method,
            path=path,
            status=StepStatus.PASSED if passed else StepStatus.FAILED,
            detail=detail,
            status_code=outcome.status_code,
            duration_ms=duration_ms,
        )

    @staticmethod
    def _skipped(index: int, step: Step, path: str, detail: str) -> StepResult:
        return StepResult(
            index=index,
            name=step.name,
            method=step.method,
            path=path,
            status=StepStatus.SKIPPED,
            detail=detail,
        )


def _with_captured(detail: str | None, captured: dict[str, str]) -> str | None:
    if not captured:
        return detail
    shown = ", ".join(
        f"{name}={_abbreviate(value) if name == 'credential' else value}" for name, value in captured.items()
    )
    return f"{detail} ({shown})" if detail else shown


def _abbreviate(value: str, limit: int = 12) -> str:
    return value if len(value) <= limit else f"{value[:limit]}..."
