"""RemoteServiceBackend against httpx.MockTransport (no network)."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from coderunner.config import RemoteServiceConfig, SandboxConfig, Settings
from coderunner.sandbox.backends import create_backend
from coderunner.sandbox.backends.remote import RemoteServiceBackend
from coderunner.sandbox.models import ExecutionOutcome, Workspace
from coderunner.sandbox.registry import default_registry

TIMEOUT_MESSAGE = "Execution timed out after 5 seconds."


def make_backend(handler, **config) -> RemoteServiceBackend:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteServiceBackend(
        config=RemoteServiceConfig(url="http://piston.test/execute", **config),
        timeout_message=TIMEOUT_MESSAGE,
        client=client,
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    return Workspace(
        request_id="r1",
        root_path=tmp_path,
        files={"util.py": "X = 1", "main.py": "from util import X\nprint(X)"},
    )


@pytest.mark.asyncio
async def test_payload_puts_entry_first_and_maps_output(workspace: Workspace) -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update(json.loads(request.content))
        return httpx.Response(200, json={"run": {"stdout": "1\n", "stderr": "", "code": 0}})

    backend = make_backend(handler, run_timeout_ms=3000)
    result = await backend.execute(default_registry().get("python"), workspace, "main.py")

    assert captured["language"] == "python"
    assert captured["version"] == "3.10.0"
    assert [f["name"] for f in captured["files"]] == ["main.py", "util.py"]
    assert captured["run_timeout"] == 3000
    assert "compile_timeout" not in captured
    assert result.outcome == ExecutionOutcome.COMPLETED
    assert result.stdout == "1\n"
    assert result.exit_code == 0


@pytest.mark.asyncio
async def test_non_success_status_is_backend_error(workspace: Workspace) -> None:
    backend = make_backend(lambda request: httpx.Response(503, text="overloaded"))

    result = await backend.execute(default_registry().get("python"), workspace, "main.py")

    assert result.outcome == ExecutionOutcome.BACKEND_ERROR
    assert result.error == "Remote execution request failed with status 503"


@pytest.mark.asyncio
async def test_network_failure_is_backend_error(workspace: Workspace) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await make_backend(handler).execute(default_registry().get("python"), workspace, "main.py")

    assert result.outcome == ExecutionOutcome.BACKEND_ERROR
    assert "connection refused" in (result.error or "")


@pytest.mark.asyncio
async def test_service_timeout_is_reported_as_timed_out(workspace: Workspace) -> None:
    body = {"run": {"stdout": "partial", "stderr": "", "code": None, "signal": "SIGKILL", "status": "TO"}}
    backend = make_backend(lambda request: httpx.Response(200, json=body))

    result = await backend.execute(default_registry().get("python"), workspace, "main.py")

    assert result.outcome == ExecutionOutcome.TIMED_OUT
    assert result.stdout == ""
    assert result.stderr == TIMEOUT_MESSAGE


@pytest.mark.asyncio
async def test_compile_failure_returns_compiler_output(tmp_path: Path) -> None:
    body = {"compile": {"stdout": "", "stderr": "main.c:1: error: expected ';'", "code": 1}}
    backend = make_backend(lambda request: httpx.Response(200, json=body))
    workspace = Workspace(request_id="r2", root_path=tmp_path, files={"main.c": "int main(){return 0}"})

    result = await backend.execute(default_registry().get("c"), workspace, "main.c")

    assert result.outcome == ExecutionOutcome.COMPLETED
    assert result.exit_code == 1
    assert "expected ';'" in result.stderr


@pytest.mark.parametrize(
    ("run_timeout_ms", "message"),
    [
        (None, "Execution timed out after 5 seconds."),
        (3000, "Execution timed out after 3 seconds."),
        (2500, "Execution timed out after 2.5 seconds."),
    ],
)
def test_timeout_message_follows_forwarded_run_limit(run_timeout_ms, message) -> None:
    settings = Settings(
        sandbox=SandboxConfig(backend="remote", execution_timeout=5.0),
        remote=RemoteServiceConfig(run_timeout_ms=run_timeout_ms),
    )

    backend = create_backend(settings)

    assert isinstance(backend, RemoteServiceBackend)
    assert backend._timeout_message == message
