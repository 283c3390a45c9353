"""
Remote execution backend for a Piston-compatible service.

Isolation is delegated entirely to the remote service; this backend only
serializes the workspace files, forwards them and maps the response.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import httpx
from structlog import get_logger

from coderunner.sandbox.backends.base import SandboxExecutor
from coderunner.sandbox.models import ExecutionOutcome, SandboxResult, Workspace

if TYPE_CHECKING:
    from coderunner.config import RemoteServiceConfig
    from coderunner.sandbox.registry import LanguageProfile

logger = get_logger()

# Piston marks runs killed by its own time limit with status "TO"
_TIMEOUT_STATUSES = {"TO"}


class RemoteServiceBackend(SandboxExecutor):
    """Forwards each run to the remote execution service over HTTP."""

    name = "remote"

    def __init__(
        self,
        config: "RemoteServiceConfig",
        timeout_message: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._timeout_message = timeout_message
        self._client = client
        self._owns_client = client is None

    async def initialize(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.request_timeout)
            self._owns_client = True
            logger.info("Remote execution client ready", url=self._config.url)

    async def shutdown(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            logger.info("Remote execution client closed")

    async def execute(
        self,
        profile: "LanguageProfile",
        workspace: Workspace,
        entry_file: str,
    ) -> SandboxResult:
        if self._client is None:
            return self.backend_error("Sandbox not initialized. Call initialize() first.")

        payload = self._build_payload(profile, workspace, entry_file)
        start_time = time.monotonic()

        try:
            response = await self._client.post(self._config.url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("Remote execution request failed", error=str(exc))
            return self.backend_error(
                f"Remote execution request failed: {exc}",
                execution_time=time.monotonic() - start_time,
            )

        elapsed = time.monotonic() - start_time
        if not response.is_success:
            logger.error(
                "Remote execution service returned an error",
                status_code=response.status_code,
                body=response.text[:500],
            )
            return self.backend_error(
                f"Remote execution request failed with status {response.status_code}",
                execution_time=elapsed,
            )

        try:
            body = response.json()
            if not isinstance(body, dict):
                raise ValueError("response body is not an object")
        except ValueError:
            return self.backend_error(
                "Remote execution service returned invalid JSON",
                execution_time=elapsed,
            )

        return self._map_response(body, elapsed)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_payload(
        self, profile: "LanguageProfile", workspace: Workspace, entry_file: str
    ) -> dict[str, Any]:
        # The service treats the first file as the entry point
        names = [entry_file] + [name for name in workspace.files if name != entry_file]
        payload: dict[str, Any] = {
            "language": profile.remote_language,
            "version": profile.remote_version,
            "files": [{"name": name, "content": workspace.files[name]} for name in names],
        }
        if self._config.run_timeout_ms is not None:
            payload["run_timeout"] = self._config.run_timeout_ms
        if self._config.compile_timeout_ms is not None:
            payload["compile_timeout"] = self._config.compile_timeout_ms
        return payload

    def _map_response(self, body: dict[str, Any], elapsed: float) -> SandboxResult:
        compile_stage = body.get("compile") or {}
        run_stage = body.get("run") or {}

        if _stage_timed_out(compile_stage) or _stage_timed_out(run_stage):
            return self.timed_out(self._timeout_message, elapsed)

        # Compilation failed: the run stage never happened
        if compile_stage and compile_stage.get("code") not in (0, None) and not run_stage:
            return SandboxResult(
                outcome=ExecutionOutcome.COMPLETED,
                stdout=compile_stage.get("stdout") or "",
                stderr=compile_stage.get("stderr") or "",
                exit_code=compile_stage.get("code"),
                execution_time=elapsed,
            )

        return SandboxResult(
            outcome=ExecutionOutcome.COMPLETED,
            stdout=run_stage.get("stdout") or "",
            stderr=(compile_stage.get("stderr") or "") + (run_stage.get("stderr") or ""),
            exit_code=run_stage.get("code"),
            execution_time=elapsed,
        )


def _stage_timed_out(stage: dict[str, Any]) -> bool:
    if stage.get("status") in _TIMEOUT_STATUSES:
        return True
    # Older service versions only report the kill signal
    return stage.get("signal") == "SIGKILL" and stage.get("code") is None
