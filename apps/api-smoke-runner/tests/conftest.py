"""Test bootstrap and shared fakes for api-smoke-runner."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable

import pytest
import structlog

APP_ROOT = Path(__file__).resolve().parents[1]
app_root_str = str(APP_ROOT)
if app_root_str not in sys.path:
    sys.path.insert(0, app_root_str)

Responder = Callable[[str, str, dict[str, Any] | None], tuple[int, Any]]


class FakeTransport:
    """Records every request and answers from a responder function."""

    def __init__(self, responder: Responder) -> None:
        self.responder = responder
        self.calls: list[dict[str, Any]] = []

    def __call__(self, url: str, method: str, headers: dict[str, str], body: bytes | None) -> tuple[int, bytes]:
        payload = json.loads(body.decode("utf-8")) if body else None
        self.calls.append({"url": url, "method": method, "headers": dict(headers), "body": payload})
        path = url.split("/api/v1", 1)[-1]
        status, response = self.responder(method, path, payload)
        raw = response if isinstance(response, bytes) else json.dumps(response).encode("utf-8")
        return status, raw

    def paths(self) -> list[str]:
        return [f"{call['method']} {call['url'].split('/api/v1', 1)[-1]}" for call in self.calls]


def happy_responder(method: str, path: str, body: dict[str, Any] | None) -> tuple[int, Any]:
    if path == "/auth/register":
        return 200, {"message": "ok", "data": {"id": "u1"}}
    if path == "/auth/login":
        return 200, {"token": "tok1"}
    if path == "/products" and method == "POST":
        return 200, {"message": "ok", "data": {"id": "p1"}}
    return 200, {"message": "ok", "count": 1, "data": {"id": "x", "email": "e@example.com", "name": "Laptop"}}


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()
