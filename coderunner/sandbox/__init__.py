"""Untrusted code validation and sandboxed execution."""

from coderunner.sandbox.executor import CodeExecutor
from coderunner.sandbox.models import (
    DependencyManifest,
    ExecutionMode,
    ExecutionOutcome,
    ExecutionRequest,
    NormalizedOutput,
    SandboxResult,
    ValidationResult,
    Workspace,
)

__all__ = [
    "CodeExecutor",
    "DependencyManifest",
    "ExecutionMode",
    "ExecutionOutcome",
    "ExecutionRequest",
    "NormalizedOutput",
    "SandboxResult",
    "ValidationResult",
    "Workspace",
]
