"""Shared fixtures: a scriptable backend and an app wired to it."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from coderunner.sandbox.executor import CodeExecutor
from coderunner.sandbox.models import ExecutionOutcome, SandboxResult
from coderunner.sandbox.workspace import WorkspaceManager
from tests.fakes import FakeBackend


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend(SandboxResult(outcome=ExecutionOutcome.COMPLETED, stdout="hi\n"))


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    return tmp_path / "workspaces"


@pytest.fixture
def make_executor(workspace_root: Path) -> Callable[[FakeBackend], CodeExecutor]:
    def factory(backend: FakeBackend) -> CodeExecutor:
        return CodeExecutor(backend=backend, workspaces=WorkspaceManager(root=workspace_root))
    return factory


@pytest.fixture
def client(fake_backend: FakeBackend, make_executor) -> Iterator[TestClient]:
    from coderunner.main import app
    from coderunner.services.executor_service import get_executor

    executor = make_executor(fake_backend)

    async def override() -> CodeExecutor:
        return executor

    app.dependency_overrides[get_executor] = override
    # Lifespan is not entered so no real backend is contacted
    test_client = TestClient(app, raise_server_exceptions=False)
    yield test_client
    app.dependency_overrides.clear()
