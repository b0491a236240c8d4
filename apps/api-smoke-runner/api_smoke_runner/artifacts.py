"""Run artifacts: JSONL events, JSON summary and JUnit XML."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TextIO
import xml.etree.ElementTree as ET

import structlog

from .models import ScenarioResult, StepResult, StepStatus
from .scenario import Step

LOGGER = structlog.get_logger("api_smoke_runner.artifacts")


@dataclass
class RunArtifacts:
    run_dir: Path
    events_file: Path
    summary_file: Path
    junit_file: Path

    @classmethod
    def prepare(cls, output_root: Path, run_id: str) -> RunArtifacts:
        run_dir = output_root / run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        return cls(
            run_dir=run_dir,
            events_file=run_dir / "events.jsonl",
            summary_file=run_dir / "summary.json",
            junit_file=run_dir / "results.junit.xml",
        )


class ArtifactWriter:
    """Result sink persisting a run for CI consumption."""

    def __init__(self, output_root: Path, run_id: str) -> None:
        self.artifacts = RunArtifacts.prepare(output_root, run_id)
        self._events: Optional[TextIO] = None

    def start(self, scenario_id: str, total_steps: int) -> None:
        self._events = self.artifacts.events_file.open("w", encoding="utf-8")

    def step_started(self, index: int, step: Step, path: str) -> None:
        return None

    def step_finished(self, result: StepResult) -> None:
        if self._events is None:
            return
        self._events.write(result.model_dump_json() + "\n")
        self._events.flush()

    def finish(self, summary: ScenarioResult) -> None:
        self.close()
        self.artifacts.summary_file.write_text(summary.model_dump_json(indent=2), encoding="utf-8")
        write_junit(summary, self.artifacts.junit_file)
        LOGGER.info("artifacts_written", run_dir=str(self.artifacts.run_dir))

    def close(self) -> None:
        if self._events is not None:
            self._events.close()
            self._events = None


def write_junit(summary: ScenarioResult, junit_file: Path) -> None:
    suite = ET.Element(
        "testsuite",
        attrib={
            "name": summary.scenario_id,
            "tests": str(summary.total),
            "failures": str(summary.failed),
            "skipped": str(summary.skipped),
            "time": str(summary.duration_ms / 1000),
        },
    )
    for result in summary.steps:
        case = ET.SubElement(
            suite,
            "testcase",
            attrib={
                "classname": summary.scenario_id,
                "name": f"{result.index:02d} {result.name}",
                "time": str(result.duration_ms / 1000),
            },
        )
        if result.status is StepStatus.FAILED:
            failure = ET.SubElement(
                case,
                "failure",
                attrib={"message": result.detail or "Step failed"},
            )
            failure.text = f"{result.method} {result.path} -> {result.status_code}"
        elif result.status is StepStatus.SKIPPED:
            ET.SubElement(case, "skipped", attrib={"message": result.detail or "Step skipped"})
    ET.ElementTree(suite).write(junit_file, encoding="utf-8", xml_declaration=True)
