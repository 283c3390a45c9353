"""
Error taxonomy for the execution pipeline.

Request-shape errors (``MissingFields``, ``UnsupportedLanguage``,
``InvalidFileName``, ``ValidationFailed``) are raised before any workspace or
sandbox resource is allocated and map to HTTP 400. Backend and internal
failures map to HTTP 500.
"""

from __future__ import annotations

from typing import Any, Sequence


class CodeRunnerError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message}


class MissingFields(CodeRunnerError):
    status_code = 400

    def __init__(self, message: str = "Missing required fields") -> None:
        super().__init__(message)


class UnsupportedLanguage(CodeRunnerError):
    status_code = 400

    def __init__(self, language: str) -> None:
        super().__init__(f"Unsupported language: {language}")
        self.language = language


class InvalidFileName(CodeRunnerError):
    """A submitted filename is absolute or escapes the workspace root."""

    status_code = 400

    def __init__(self, filename: str) -> None:
        super().__init__(f"Invalid file name: {filename}")
        self.filename = filename


class ValidationFailed(CodeRunnerError):
    status_code = 400

    def __init__(self, issues: Sequence[str]) -> None:
        super().__init__("Code validation failed")
        self.issues = list(issues)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "issues": self.issues}


class SandboxTimeout(CodeRunnerError):
    """The program exceeded its wall-clock limit.

    Backends convert this into a ``timed_out`` result; it never reaches the
    client as an HTTP error.
    """

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Execution timed out after {timeout:g} seconds.")
        self.timeout = timeout


class SandboxBackendError(CodeRunnerError):
    """The execution backend failed (remote call or process launch)."""


class InternalError(CodeRunnerError):
    pass
