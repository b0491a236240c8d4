"""CLI entrypoint for api-smoke-runner."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer

from .artifacts import ArtifactWriter
from .config import load_settings
from .console_reporter import ConsoleReporter
from .errors import ConfigurationError, ScenarioDefinitionError
from .http_client import RequestClient, UrllibTransport
from .logging_utils import configure_logging
from .output_config import log_format_for
from .runner import ResultSink, ScenarioRunner
from .scenario import build_order_api_scenario

app = typer.Typer(help="Run the end-to-end smoke scenario against an order-management API.")


@app.command()
def run(
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-u",
        help="Versioned API root, e.g. http://localhost:8080/api/v1 (env: API_SMOKE_BASE_URL).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        help="Per-request timeout in seconds; transport default when omitted (env: API_SMOKE_TIMEOUT).",
    ),
    exit_policy: Optional[str] = typer.Option(
        None,
        help="When a completed run exits non-zero: never, fatal or failures (env: API_SMOKE_EXIT_POLICY).",
    ),
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        "-o",
        help="Console output: auto, rich, plain or json (env: CONSOLE_OUTPUT_FORMAT).",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        help="Log level for structured logs on stderr (env: API_SMOKE_LOG_LEVEL).",
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        help="Write events.jsonl, summary.json and JUnit XML under <output-dir>/<run-id>.",
    ),
    run_id: Optional[str] = typer.Option(
        None,
        help="Identifier for this run; defaults to a UTC timestamp.",
    ),
) -> None:
    """Register, log in, exercise users and products, then clean up."""

    try:
        settings = load_settings(
            base_url=base_url,
            timeout=timeout,
            exit_policy=exit_policy,
            output_format=output_format,
            log_level=log_level,
            output_dir=output_dir,
            run_id=run_id,
        )
    except ConfigurationError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc

    configure_logging(settings.log_level, log_format_for(settings.output_format))
    reporter = ConsoleReporter(output_format=settings.output_format)
    resolved_run_id = settings.run_id or datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    try:
        steps = build_order_api_scenario()
        client = RequestClient(settings.base_url, transport=UrllibTransport(timeout=settings.timeout))
    except (ConfigurationError, ScenarioDefinitionError) as exc:
        reporter.print_error(str(exc))
        raise typer.Exit(code=2) from exc

    sinks: list[ResultSink] = [reporter]
    writer: ArtifactWriter | None = None
    if settings.output_dir is not None:
        writer = ArtifactWriter(settings.output_dir, resolved_run_id)
        sinks.append(writer)

    reporter.print_info(f"Target API: {client.base_url}")
    summary = ScenarioRunner(client, steps, sinks=sinks, run_id=resolved_run_id).run()
    if writer is not None:
        reporter.print_info(f"Artifacts written -> {writer.artifacts.run_dir}")

    code = settings.exit_policy.exit_code(summary)
    if code:
        raise typer.Exit(code=code)


def main() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
