"""
Executor service for dependency injection and lifecycle management.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from structlog import get_logger

from coderunner.config import get_settings
from coderunner.sandbox.backends import create_backend
from coderunner.sandbox.executor import CodeExecutor
from coderunner.sandbox.workspace import WorkspaceManager

logger = get_logger()

# Global executor instance
_executor: CodeExecutor | None = None


async def get_executor() -> CodeExecutor:
    """Get the executor instance for dependency injection."""
    if _executor is None:
        raise RuntimeError("Executor not initialized. Use executor_lifespan.")
    return _executor


def build_executor() -> CodeExecutor:
    """Create an executor wired to the configured backend."""
    settings = get_settings()
    return CodeExecutor(
        backend=create_backend(settings),
        workspaces=WorkspaceManager(root=settings.sandbox.workspace_root),
    )


@asynccontextmanager
async def executor_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage executor lifecycle."""
    global _executor

    settings = get_settings()
    logger.info("Initializing executor...", backend=settings.sandbox.backend)

    _executor = build_executor()
    await _executor.initialize()

    logger.info("Executor started successfully")

    try:
        yield
    finally:
        logger.info("Shutting down executor...")
        await _executor.shutdown()
        _executor = None
        logger.info("Executor stopped")
