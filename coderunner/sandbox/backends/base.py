"""Execution backend contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from coderunner.sandbox.models import ExecutionOutcome, SandboxResult

if TYPE_CHECKING:
    from coderunner.sandbox.models import Workspace
    from coderunner.sandbox.registry import LanguageProfile


class SandboxExecutor(ABC):
    """
    Runs a materialized workspace in an isolated context.

    Implementations attempt each run exactly once and report every outcome
    through ``SandboxResult``:

    - ``completed``: the program ran, whatever its exit code
    - ``timed_out``: the wall-clock limit fired; stdout is empty and stderr
      carries the timeout message
    - ``backend_error``: the backend itself failed
    """

    name: str = "base"

    async def initialize(self) -> None:
        """Prepare long-lived resources (clients, images)."""

    async def shutdown(self) -> None:
        """Release long-lived resources."""

    @abstractmethod
    async def execute(
        self,
        profile: "LanguageProfile",
        workspace: "Workspace",
        entry_file: str,
    ) -> SandboxResult:
        """Run *entry_file* from *workspace*."""

    @staticmethod
    def timed_out(message: str, execution_time: float = 0.0) -> SandboxResult:
        return SandboxResult(
            outcome=ExecutionOutcome.TIMED_OUT,
            stdout="",
            stderr=message,
            execution_time=execution_time,
            error=message,
        )

    @staticmethod
    def backend_error(
        message: str,
        stdout: str = "",
        stderr: str = "",
        execution_time: float = 0.0,
    ) -> SandboxResult:
        return SandboxResult(
            outcome=ExecutionOutcome.BACKEND_ERROR,
            stdout=stdout,
            stderr=stderr,
            execution_time=execution_time,
            error=message,
        )
