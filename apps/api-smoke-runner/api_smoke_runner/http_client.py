"""HTTP transport and request client used by scenario steps."""

from __future__ import annotations

from http.client import HTTPException
from typing import Any, Callable, Optional, Protocol
import json
from urllib import error, request

import structlog

from .errors import ConfigurationError, TransportError
from .models import RequestOutcome

LOGGER = structlog.get_logger("api_smoke_runner.http")

DEFAULT_BASE_URL = "http://localhost:8080/api/v1"


class Transport(Protocol):
    """Sends one request and returns ``(status, raw_body)``; raises TransportError."""

    def __call__(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> tuple[int, bytes]: ...


class UrllibTransport:
    """Transport built on ``urllib.request``; HTTP error statuses are returned, not raised."""

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout

    def __call__(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> tuple[int, bytes]:
        req = request.Request(url, data=body, headers=headers, method=method)
        kwargs: dict[str, Any] = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout
        try:
            with request.urlopen(req, **kwargs) as response:
                return response.getcode(), response.read()
        except error.HTTPError as exc:
            try:
                return exc.code, exc.read()
            except (HTTPException, OSError):
                # status arrived intact; an unreadable error body is treated as absent
                return exc.code, b""
        except (error.URLError, HTTPException, OSError) as exc:
            reason = getattr(exc, "reason", None) or exc
            raise TransportError(f"{method} {url} failed: {reason}", url=url) from exc


class RequestClient:
    """Performs single API calls against a versioned base URL."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, transport: Optional[Transport] = None) -> None:
        if transport is None:
            transport = UrllibTransport()
        if not callable(transport):
            raise ConfigurationError(f"Transport {transport!r} is not callable")
        self.base_url = base_url.rstrip("/")
        self._transport: Callable[..., tuple[int, bytes]] = transport

    def send(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        credential: str | None = None,
    ) -> RequestOutcome:
        method = method.upper()
        url = self._build_url(path)
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        payload = json.dumps(body).encode("utf-8") if body is not None else None

        try:
            status, raw_body = self._transport(url, method, headers, payload)
        except (TransportError, HTTPException, OSError) as exc:
            LOGGER.warning("request_failed", method=method, url=url, error=str(exc))
            return RequestOutcome(status_code=0, transport_error=str(exc), success=False)

        return RequestOutcome(
            status_code=status,
            body=_decode_body(raw_body),
            success=200 <= status <= 299,
        )

    def _build_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"


def _decode_body(raw_body: bytes | str | None) -> Any:
    if not raw_body:
        return None
    if isinstance(raw_body, bytes):
        raw_body = raw_body.decode("utf-8", errors="replace")
    try:
        return json.loads(raw_body)
    except json.JSONDecodeError:
        return None
