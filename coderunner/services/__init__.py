"""Services module."""

from .executor_service import build_executor, executor_lifespan, get_executor

__all__ = ["build_executor", "executor_lifespan", "get_executor"]
