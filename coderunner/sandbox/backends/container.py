"""
Docker-based execution backend.

Lifecycle per execution:
  1. Create an ephemeral container from the language's image
  2. Copy the workspace into the container via tar archive (no volume mounts)
  3. Start the container and wait for exit (with timeout)
  4. Capture stdout / stderr
  5. Force-remove the container

All Docker SDK calls are synchronous and wrapped with ``asyncio.to_thread``
to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import io
import posixpath
import tarfile
import time
from typing import TYPE_CHECKING, Any

import docker
from docker.errors import DockerException, ImageNotFound
from structlog import get_logger

from coderunner.errors import SandboxTimeout
from coderunner.sandbox.backends.base import SandboxExecutor
from coderunner.sandbox.models import ExecutionOutcome, SandboxResult, Workspace

if TYPE_CHECKING:
    from coderunner.config import SandboxConfig
    from coderunner.sandbox.registry import LanguageProfile

logger = get_logger()


class ContainerBackend(SandboxExecutor):
    """
    Runs each request in a throw-away Docker container.

    The backend is long-lived (created once at application startup); every
    ``execute()`` call creates and removes its own container. Limits applied:
    no network, bounded memory, fractional CPU, bounded process count and a
    hard wall-clock timeout after which the container is killed.
    """

    name = "container"

    def __init__(
        self,
        config: "SandboxConfig",
        client: docker.DockerClient | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._ready_images: set[str] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Connect to the Docker daemon."""
        if self._client is not None:
            return
        try:
            self._client = await asyncio.to_thread(docker.from_env)
            await asyncio.to_thread(self._client.ping)
            logger.info("Docker daemon connected")
        except DockerException as exc:
            logger.error("Cannot connect to Docker", error=str(exc))
            raise RuntimeError(
                "Docker is not available. Install and start Docker to enable code execution."
            ) from exc

    async def shutdown(self) -> None:
        """Release Docker client resources."""
        if self._client:
            await asyncio.to_thread(self._client.close)
            self._client = None
            logger.info("Docker backend shut down")

    # ------------------------------------------------------------------
    # Image management
    # ------------------------------------------------------------------

    async def _ensure_image(self, image: str) -> None:
        """Verify the language image exists locally, pulling it if allowed."""
        if image in self._ready_images:
            return
        assert self._client is not None
        try:
            await asyncio.to_thread(self._client.images.get, image)
        except ImageNotFound:
            if not self._config.pull_images:
                raise
            logger.info("Sandbox image not found, pulling", image=image)
            await asyncio.to_thread(self._client.images.pull, image)
            logger.info("Sandbox image pulled", image=image)
        self._ready_images.add(image)

    # ------------------------------------------------------------------
    # Code execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        profile: "LanguageProfile",
        workspace: Workspace,
        entry_file: str,
    ) -> SandboxResult:
        """Run the workspace inside an ephemeral container."""
        if not self._client:
            return self.backend_error("Sandbox not initialized. Call initialize() first.")

        timeout = self._config.execution_timeout
        container = None
        start_time = time.monotonic()

        try:
            await self._ensure_image(profile.image)

            # --- create container -----------------------------------------
            container = await asyncio.to_thread(
                self._create_container, profile, entry_file
            )

            # --- inject workspace via tar archive -------------------------
            await asyncio.to_thread(self._copy_workspace, container, workspace)

            # --- start & wait --------------------------------------------
            await asyncio.to_thread(container.start)

            try:
                exit_code = await self._wait(container, timeout)
            except SandboxTimeout as exc:
                await self._safe_kill(container)
                logger.info("Container killed after timeout", timeout=timeout)
                return self.timed_out(exc.message, time.monotonic() - start_time)

            # --- capture output -------------------------------------------
            stdout_raw: bytes = await asyncio.to_thread(
                container.logs, stdout=True, stderr=False
            )
            stderr_raw: bytes = await asyncio.to_thread(
                container.logs, stdout=False, stderr=True
            )

            stdout_str, stderr_str, truncated = self._process_output(
                stdout_raw, stderr_raw
            )

            # A non-zero exit belongs to the user's program, not the pipeline
            return SandboxResult(
                outcome=ExecutionOutcome.COMPLETED,
                stdout=stdout_str,
                stderr=stderr_str,
                exit_code=exit_code,
                execution_time=time.monotonic() - start_time,
                truncated=truncated,
            )

        except Exception as exc:
            logger.error("Sandbox execution error", error=str(exc), exc_info=True)
            return self.backend_error(
                f"Sandbox error: {exc}",
                execution_time=time.monotonic() - start_time,
            )
        finally:
            if container is not None:
                await self._safe_remove(container)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _create_container(self, profile: "LanguageProfile", entry_file: str) -> Any:
        """Create (but don't start) the sandbox container."""
        assert self._client is not None
        return self._client.containers.create(
            image=profile.image,
            command=profile.container_command(entry_file),
            working_dir=self._config.container_workdir,
            detach=True,
            # Resource limits
            mem_limit=self._config.memory_limit,
            memswap_limit=self._config.memory_limit,
            cpu_period=self._config.cpu_period,
            cpu_quota=self._config.cpu_quota,
            pids_limit=self._config.pids_limit,
            # Network isolation
            network_disabled=not self._config.network_enabled,
            # Security hardening
            security_opt=["no-new-privileges"],
            cap_drop=["ALL"],
        )

    def _copy_workspace(self, container: Any, workspace: Workspace) -> None:
        """Copy the workspace tree to the container workdir via tar."""
        workdir = self._config.container_workdir.rstrip("/") or "/"
        parent, arcname = posixpath.split(workdir)
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as tar:
            tar.add(str(workspace.root_path), arcname=arcname or ".")
        buf.seek(0)
        container.put_archive(parent or "/", buf)

    @staticmethod
    async def _wait(container: Any, timeout: float) -> int:
        """Block until the container exits; raise ``SandboxTimeout`` on expiry."""
        try:
            exit_info = await asyncio.wait_for(
                asyncio.to_thread(container.wait),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise SandboxTimeout(timeout) from None
        return exit_info.get("StatusCode", -1)

    def _process_output(
        self, stdout_raw: bytes, stderr_raw: bytes
    ) -> tuple[str, str, bool]:
        """Decode and optionally truncate captured output."""
        max_size = self._config.max_output_size
        truncated = False

        stdout_str = stdout_raw.decode("utf-8", errors="replace")
        stderr_str = stderr_raw.decode("utf-8", errors="replace")

        if len(stdout_str) > max_size:
            stdout_str = stdout_str[:max_size] + "\n… [output truncated]"
            truncated = True
        if len(stderr_str) > max_size:
            stderr_str = stderr_str[:max_size] + "\n… [output truncated]"
            truncated = True

        return stdout_str, stderr_str, truncated

    @staticmethod
    async def _safe_kill(container: Any) -> None:
        try:
            await asyncio.to_thread(container.kill)
        except DockerException as exc:
            logger.warning("Failed to kill container", error=str(exc))

    @staticmethod
    async def _safe_remove(container: Any) -> None:
        try:
            await asyncio.to_thread(container.remove, force=True)
        except DockerException as exc:
            logger.warning("Failed to remove container", error=str(exc))
