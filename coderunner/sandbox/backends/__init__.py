"""Execution backends, selected by ``SANDBOX_BACKEND``."""

from coderunner.config import Settings
from coderunner.errors import SandboxTimeout
from coderunner.sandbox.backends.base import SandboxExecutor
from coderunner.sandbox.backends.container import ContainerBackend
from coderunner.sandbox.backends.remote import RemoteServiceBackend

__all__ = ["SandboxExecutor", "ContainerBackend", "RemoteServiceBackend", "create_backend"]


def create_backend(settings: Settings) -> SandboxExecutor:
    """Build the backend named in the configuration."""
    if settings.sandbox.backend == "container":
        return ContainerBackend(config=settings.sandbox)
    # The service enforces its own run limit when one is forwarded
    run_timeout_ms = settings.remote.run_timeout_ms
    timeout = run_timeout_ms / 1000 if run_timeout_ms is not None else settings.sandbox.execution_timeout
    return RemoteServiceBackend(
        config=settings.remote,
        timeout_message=SandboxTimeout(timeout).message,
    )
