"""Run state, request outcome and result models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import RunStateError

RUN_STATE_FIELDS = ("credential", "user_id", "product_id")


class RunState(BaseModel):
    """Values carried forward between steps of one run."""

    model_config = ConfigDict(frozen=True)

    credential: Optional[str] = None
    user_id: Optional[str] = None
    product_id: Optional[str] = None

    def merge(self, updates: dict[str, str]) -> RunState:
        """Return a new state with ``updates`` applied; captured values never change."""

        if not updates:
            return self
        for key in updates:
            if key not in RUN_STATE_FIELDS:
                raise RunStateError(f"Unknown run state field '{key}'")
            if getattr(self, key) is not None:
                raise RunStateError(f"Run state field '{key}' is already set")
        return self.model_copy(update=updates)

    def is_set(self, key: str) -> bool:
        return getattr(self, key, None) is not None


class ResponseEnvelope(BaseModel):
    """Optional-field view over the API's JSON response body."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    message: Optional[str] = None
    error: Optional[str] = None
    token: Optional[str] = None
    count: Optional[int] = None
    data: Any = None

    @classmethod
    def from_body(cls, body: Any) -> ResponseEnvelope:
        if not isinstance(body, dict):
            return cls()
        fields = {}
        for key in ("message", "error", "token"):
            value = body.get(key)
            if isinstance(value, str):
                fields[key] = value
        count = body.get("count")
        if isinstance(count, int) and not isinstance(count, bool):
            fields["count"] = count
        fields["data"] = body.get("data")
        return cls(**fields)

    def lookup(self, path: str) -> Any:
        """Resolve a dotted path such as ``data.id``; missing segments give ``None``."""

        head, _, rest = path.partition(".")
        current: Any = getattr(self, head, None)
        for segment in rest.split(".") if rest else []:
            if not isinstance(current, dict):
                return None
            current = current.get(segment)
        return current


class RequestOutcome(BaseModel):
    """Normalized result of one HTTP call."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    body: Any = None
    transport_error: Optional[str] = None
    success: bool

    @property
    def envelope(self) -> ResponseEnvelope:
        return ResponseEnvelope.from_body(self.body)

    def error_detail(self) -> str:
        if self.transport_error:
            return self.transport_error
        envelope = self.envelope
        if envelope.message and envelope.error:
            return f"{envelope.error}: {envelope.message}"
        if envelope.message or envelope.error:
            return envelope.message or envelope.error  # type: ignore[return-value]
        return f"HTTP {self.status_code}"


class StepStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepResult(BaseModel):
    """Runtime result for one step."""

    model_config = ConfigDict(frozen=True)

    index: int
    name: str
    method: str
    path: str
    status: StepStatus
    detail: Optional[str] = None
    status_code: Optional[int] = None
    duration_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status is StepStatus.PASSED


class ScenarioResult(BaseModel):
    """Aggregated run summary."""

    scenario_id: str
    base_url: str
    run_id: str
    started_at: datetime
    finished_at: datetime
    duration_ms: float
    steps: list[StepResult] = Field(default_factory=list)
    final_state: RunState = Field(default_factory=RunState)
    halted_by: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def passed(self) -> int:
        return sum(1 for result in self.steps if result.status is StepStatus.PASSED)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.steps if result.status is StepStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for result in self.steps if result.status is StepStatus.SKIPPED)

    @property
    def halted(self) -> bool:
        return self.halted_by is not None
