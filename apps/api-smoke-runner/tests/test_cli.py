from __future__ import annotations

import json
import threading
import xml.etree.ElementTree as ET
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any

from typer.testing import CliRunner

from api_smoke_runner.main import app

runner = CliRunner()


class OrderApi:
    """In-memory stand-in for the order-management API."""

    def __init__(self, *, fail_login: bool = False, fail_product_create: bool = False) -> None:
        self.fail_login = fail_login
        self.fail_product_create = fail_product_create
        self.users: dict[str, dict[str, Any]] = {}
        self.products: dict[str, dict[str, Any]] = {}
        self.requests: list[str] = []

    def handle(self, method: str, path: str, headers: Any, body: Any) -> tuple[int, dict[str, Any]]:
        self.requests.append(f"{method} {path}")
        route = path.split("/api/v1", 1)[-1]
        if route == "/hello" and method == "GET":
            return 200, {"message": "Hello World"}
        if route == "/auth/register" and method == "POST":
            user_id = f"u{len(self.users) + 1}"
            self.users[user_id] = {"id": user_id, **body}
            return 201, {"message": "User registered successfully", "data": {"id": user_id}}
        if route == "/auth/login" and method == "POST":
            if self.fail_login:
                return 401, {"error": "Login failed", "message": "invalid email or password"}
            return 200, {"message": "Login successful", "token": "tok-123"}

        if headers.get("Authorization") != "Bearer tok-123":
            return 401, {"error": "Unauthorized", "message": "Authorization header is required"}

        if route.endswith("/") or "//" in route:
            return 404, {"error": "Not found"}
        parts = [part for part in route.split("?", 1)[0].split("/") if part]
        if parts[0] == "users":
            if len(parts) == 1:
                return 200, {"count": len(self.users), "data": list(self.users.values())}
            user = self.users.get(parts[1])
            if user is None:
                return 404, {"error": "User not found"}
            if method == "DELETE":
                del self.users[parts[1]]
                return 200, {"message": "User deleted successfully"}
            if method == "PUT":
                user.update(body)
                return 200, {"message": "User updated successfully", "data": user}
            return 200, {"data": user}

        if parts == ["products"]:
            if method == "POST":
                if self.fail_product_create:
                    return 400, {"error": "Invalid request", "message": "sku is required"}
                product_id = f"p{len(self.products) + 1}"
                self.products[product_id] = {"id": product_id, **body}
                return 201, {"message": "Product created successfully", "data": {"id": product_id}}
            return 200, {"count": len(self.products), "data": list(self.products.values())}
        if parts[1] in ("search", "category"):
            return 200, {"count": len(self.products), "data": list(self.products.values())}
        product = self.products.get(parts[1]) if len(parts) > 1 else None
        if product is None:
            return 404, {"error": "Product not found"}
        if method == "DELETE":
            del self.products[parts[1]]
            return 200, {"message": "Product deleted successfully"}
        if method in ("PUT", "PATCH"):
            product.update(body)
            return 200, {"message": "Product updated successfully", "data": product}
        return 200, {"data": product}


def _start_test_server(api: OrderApi) -> tuple[HTTPServer, threading.Thread]:
    class Handler(BaseHTTPRequestHandler):
        def _handle(self) -> None:
            length = int(self.headers.get("Content-Length", 0) or 0)
            raw = self.rfile.read(length) if length else b""
            body = json.loads(raw.decode("utf-8")) if raw else None
            status, payload = api.handle(self.command, self.path, self.headers, body)
            data = json.dumps(payload).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = _handle  # noqa: N815 - HTTP handler requirement

        def log_message(self, format: str, *args: object) -> None:  # pragma: no cover - silence logs
            return

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, thread


def _invoke(api: OrderApi, args: list[str], env: dict[str, str] | None = None):
    server, thread = _start_test_server(api)
    base_url = f"http://127.0.0.1:{server.server_address[1]}/api/v1"
    try:
        return runner.invoke(
            app,
            ["--output-format", "plain", *args],
            env={"API_SMOKE_BASE_URL": base_url, **(env or {})},
        )
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=2)


def test_run_passes_against_api_and_writes_artifacts(tmp_path: Path) -> None:
    api = OrderApi()
    output_dir = tmp_path / "runs"

    result = _invoke(api, ["--output-dir", str(output_dir), "--run-id", "test-run"])

    assert result.exit_code == 0, result.output
    assert "ALL STEPS PASSED" in result.output
    assert api.users == {}
    assert api.products == {}

    run_dir = output_dir / "test-run"
    summary = json.loads((run_dir / "summary.json").read_text(encoding="utf-8"))
    assert len(summary["steps"]) == 16
    assert summary["final_state"] == {"credential": "tok-123", "user_id": "u1", "product_id": "p1"}
    assert summary["halted_by"] is None

    events = [json.loads(line) for line in (run_dir / "events.jsonl").read_text(encoding="utf-8").splitlines()]
    assert [event["status"] for event in events] == ["passed"] * 16
    assert events[4]["detail"].startswith("test") and events[4]["detail"].endswith("@example.com")

    suite = ET.parse(run_dir / "results.junit.xml").getroot()
    assert suite.attrib["tests"] == "16"
    assert suite.attrib["failures"] == "0"


def test_failed_login_halts_and_exit_policy_applies(tmp_path: Path) -> None:
    api = OrderApi(fail_login=True)
    output_dir = tmp_path / "runs"

    result = _invoke(api, ["--exit-policy", "fatal", "--output-dir", str(output_dir), "--run-id", "halted"])

    assert result.exit_code == 1, result.output
    assert "RUN HALTED: login failed" in result.output
    assert api.requests[-1].endswith("/auth/login")
    assert len(api.requests) == 3

    suite = ET.parse(output_dir / "halted" / "results.junit.xml").getroot()
    assert suite.attrib["failures"] == "1"
    assert suite.attrib["skipped"] == "13"


def test_completed_run_exits_zero_by_default_despite_failures() -> None:
    api = OrderApi(fail_product_create=True)

    result = _invoke(api, [])

    assert result.exit_code == 0, result.output
    assert "SKIP" in result.output
    assert "Error: Invalid request: sku is required" in result.output


def test_failures_exit_policy_from_environment() -> None:
    api = OrderApi(fail_product_create=True)

    result = _invoke(api, [], env={"API_SMOKE_EXIT_POLICY": "failures"})

    assert result.exit_code == 1, result.output


def test_json_output_emits_one_line_per_step() -> None:
    api = OrderApi()

    result = _invoke(api, ["--output-format", "json"])

    assert result.exit_code == 0, result.output
    lines = [json.loads(line) for line in result.stdout.strip().splitlines()]
    assert lines[0]["event"] == "run_started"
    assert lines[-1]["event"] == "run_finished"
    assert lines[-1]["passed"] == 16
    assert [line["name"] for line in lines[1:-1]][2] == "login"


def test_invalid_exit_policy_is_a_configuration_error() -> None:
    result = runner.invoke(app, ["--exit-policy", "sometimes", "--output-format", "plain"])

    assert result.exit_code == 2
