"""Exception hierarchy for the smoke runner."""

from __future__ import annotations


class SmokeRunnerError(Exception):
    """Base class for runner errors."""


class ConfigurationError(SmokeRunnerError):
    """Raised when settings or collaborators are missing or invalid."""


class TransportError(SmokeRunnerError):
    """Network-level failure reported by a transport."""

    def __init__(self, message: str, url: str | None = None) -> None:
        self.message = message
        self.url = url
        super().__init__(message)


class ScenarioDefinitionError(SmokeRunnerError):
    """Raised when a scenario's step ordering cannot be satisfied."""


class RunStateError(SmokeRunnerError):
    """Raised when a step tries to overwrite an already captured value."""
