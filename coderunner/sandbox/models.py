"""Data models for the code execution sandbox."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ExecutionMode(str, Enum):
    """Request mode."""

    EXECUTE = "execute"
    PREVIEW = "preview"


class ExecutionOutcome(str, Enum):
    """Terminal state of one sandbox run."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    BACKEND_ERROR = "backend_error"


@dataclass
class ExecutionRequest:
    """A validated-shape request ready for the pipeline."""

    language: str
    files: dict[str, str]
    entry_file: str
    mode: ExecutionMode = ExecutionMode.EXECUTE
    inline: bool = False


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of static screening for one request."""

    passed: bool
    issues: tuple[str, ...] = ()

    @classmethod
    def from_issues(cls, issues: list[str]) -> "ValidationResult":
        return cls(passed=not issues, issues=tuple(issues))


@dataclass
class Workspace:
    """Ephemeral directory owned by exactly one in-flight request."""

    request_id: str
    root_path: Path
    files: dict[str, str] = field(default_factory=dict)


@dataclass
class SandboxResult:
    """Captured output of a sandbox run."""

    outcome: ExecutionOutcome
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    execution_time: float = 0.0
    error: str | None = None
    truncated: bool = False


@dataclass
class NormalizedOutput:
    """Trimmed streams returned to the caller."""

    stdout: str
    stderr: str


@dataclass
class DependencyManifest:
    """External packages reachable from an entry file."""

    dependencies: dict[str, str] = field(default_factory=dict)
    visited: list[str] = field(default_factory=list)
