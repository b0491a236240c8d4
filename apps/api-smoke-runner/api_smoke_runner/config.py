"""Runner settings resolved from CLI options, environment variables and defaults."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional
import os

from pydantic import BaseModel

from .errors import ConfigurationError
from .http_client import DEFAULT_BASE_URL
from .models import ScenarioResult
from .output_config import OutputFormat, get_output_format

BASE_URL_ENV = "API_SMOKE_BASE_URL"
TIMEOUT_ENV = "API_SMOKE_TIMEOUT"
EXIT_POLICY_ENV = "API_SMOKE_EXIT_POLICY"
LOG_LEVEL_ENV = "API_SMOKE_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "warning"


class ExitPolicy(str, Enum):
    """When a completed run should report a non-zero exit code."""

    NEVER = "never"
    FATAL = "fatal"
    FAILURES = "failures"

    def exit_code(self, summary: ScenarioResult) -> int:
        if self is ExitPolicy.FATAL and summary.halted:
            return 1
        if self is ExitPolicy.FAILURES and (summary.failed or summary.halted):
            return 1
        return 0


class RunnerSettings(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    timeout: Optional[float] = None
    exit_policy: ExitPolicy = ExitPolicy.NEVER
    output_format: OutputFormat = OutputFormat.AUTO
    log_level: str = DEFAULT_LOG_LEVEL
    output_dir: Optional[Path] = None
    run_id: Optional[str] = None


def _pick(cli_value: str | None, env_name: str) -> str | None:
    if cli_value:
        return cli_value
    return os.environ.get(env_name) or None


def _parse_timeout(raw: str | float | None) -> float | None:
    if raw is None or raw == "":
        return None
    try:
        timeout = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Timeout must be a number of seconds, got {raw!r}") from exc
    if timeout <= 0:
        raise ConfigurationError("Timeout must be greater than zero")
    return timeout


def _parse_exit_policy(raw: str | None) -> ExitPolicy:
    if not raw:
        return ExitPolicy.NEVER
    try:
        return ExitPolicy(raw.lower())
    except ValueError as exc:
        choices = ", ".join(policy.value for policy in ExitPolicy)
        raise ConfigurationError(f"Exit policy must be one of: {choices}") from exc


def load_settings(
    *,
    base_url: str | None = None,
    timeout: float | None = None,
    exit_policy: str | None = None,
    output_format: str | None = None,
    log_level: str | None = None,
    output_dir: Path | None = None,
    run_id: str | None = None,
) -> RunnerSettings:
    """Resolve settings with priority: CLI parameter > Environment variable > Default."""

    raw_timeout = timeout if timeout is not None else os.environ.get(TIMEOUT_ENV)
    return RunnerSettings(
        base_url=_pick(base_url, BASE_URL_ENV) or DEFAULT_BASE_URL,
        timeout=_parse_timeout(raw_timeout),
        exit_policy=_parse_exit_policy(_pick(exit_policy, EXIT_POLICY_ENV)),
        output_format=get_output_format(output_format),
        log_level=_pick(log_level, LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL,
        output_dir=output_dir,
        run_id=run_id,
    )
