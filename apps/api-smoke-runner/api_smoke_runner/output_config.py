"""Console and log output format selection."""

import os
from enum import Enum
from typing import Literal


class OutputFormat(str, Enum):
    """How step results are rendered on the console."""
    AUTO = "auto"
    RICH = "rich"
    PLAIN = "plain"
    JSON = "json"


LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"


def get_output_format(cli_override: str | None = None) -> OutputFormat:
    """
    Get the output format with priority: CLI parameter > Environment variable > Default (auto).

    Unknown values at either level fall through to the next one.
    """
    for candidate in (cli_override, os.environ.get(ENV_VAR_NAME)):
        if candidate:
            try:
                return OutputFormat(candidate.lower())
            except ValueError:
                pass
    return OutputFormat.AUTO


def log_format_for(output_format: OutputFormat) -> LogFormat:
    """
    Map an output format to a log format:
    - auto/rich -> console (with colors)
    - plain -> plain (no colors)
    - json -> json
    """
    if output_format is OutputFormat.JSON:
        return "json"
    if output_format is OutputFormat.PLAIN:
        return "plain"
    return "console"
