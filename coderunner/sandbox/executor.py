"""
High-level code execution interface.

Orchestrates: request shaping → static validation → either dependency
analysis (preview) or workspace → sandbox backend → result normalization.
This is the single entry point consumed by the ``/api/exec`` route.
"""

from __future__ import annotations

from typing import Mapping
from uuid import uuid4

import structlog
from structlog import get_logger

from coderunner.errors import (
    InvalidFileName,
    MissingFields,
    SandboxBackendError,
    ValidationFailed,
)
from coderunner.sandbox.backends.base import SandboxExecutor
from coderunner.sandbox.dependencies import DependencyResolver
from coderunner.sandbox.models import (
    DependencyManifest,
    ExecutionMode,
    ExecutionOutcome,
    ExecutionRequest,
    NormalizedOutput,
    SandboxResult,
    ValidationResult,
)
from coderunner.sandbox.normalizer import normalize
from coderunner.sandbox.registry import LanguageRegistry, default_registry
from coderunner.sandbox.workspace import WorkspaceManager, check_filename

logger = get_logger()


class CodeExecutor:
    """
    Facade that combines validation, workspaces and a sandbox backend.

    Usage::

        executor = CodeExecutor(backend=RemoteServiceBackend(...))
        await executor.initialize()
        request = executor.prepare("python", code="print('hi')")
        output = await executor.run(request)
        await executor.shutdown()

    Requests are handled independently and strictly sequentially inside one
    call; the executor holds no per-request state.
    """

    def __init__(
        self,
        backend: SandboxExecutor,
        registry: LanguageRegistry | None = None,
        workspaces: WorkspaceManager | None = None,
    ) -> None:
        self.backend = backend
        self.registry = registry or default_registry()
        self.workspaces = workspaces or WorkspaceManager()
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        if self._initialized:
            return
        await self.backend.initialize()
        self._initialized = True
        logger.info("CodeExecutor initialized", backend=self.backend.name)

    async def shutdown(self) -> None:
        await self.backend.shutdown()
        self._initialized = False
        logger.info("CodeExecutor shut down")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def prepare(
        self,
        language: str | None,
        code: str | None = None,
        entry: str | None = None,
        files: Mapping[str, str] | None = None,
        mode: ExecutionMode | str = ExecutionMode.EXECUTE,
    ) -> ExecutionRequest:
        """
        Shape raw request fields into an ``ExecutionRequest``.

        Inline ``code`` wins over ``files``; inline source is stored under the
        language's default entry filename. Raises ``MissingFields``,
        ``UnsupportedLanguage`` or ``InvalidFileName`` before anything is
        allocated.
        """
        if not language or (not code and (not entry or not files)):
            raise MissingFields()

        profile = self.registry.get(language)
        mode = ExecutionMode(mode)

        if code:
            return ExecutionRequest(
                language=profile.name,
                files={profile.default_entry: code},
                entry_file=profile.default_entry,
                mode=mode,
                inline=True,
            )

        normalized: dict[str, str] = {}
        for name, content in files.items():
            key = str(check_filename(name))
            # "a.js" and "./a.js" name the same file
            if key in normalized:
                raise InvalidFileName(name)
            normalized[key] = content

        entry_file = str(check_filename(entry))
        if entry_file not in normalized:
            raise MissingFields(f"Entry file not found in files: {entry}")

        return ExecutionRequest(
            language=profile.name,
            files=normalized,
            entry_file=entry_file,
            mode=mode,
        )

    def validate(self, request: ExecutionRequest) -> ValidationResult:
        """Screen every submitted file with the language's checker."""
        profile = self.registry.get(request.language)
        prefix = len(request.files) > 1
        issues: list[str] = []

        for name, source in request.files.items():
            result = profile.validate(source, request.mode)
            if prefix:
                issues.extend(f"{name}: {issue}" for issue in result.issues)
            else:
                issues.extend(result.issues)

        return ValidationResult.from_issues(issues)

    async def run(self, request: ExecutionRequest) -> NormalizedOutput | DependencyManifest:
        """Validate, then preview or execute *request*."""
        request_id = uuid4().hex[:12]
        with structlog.contextvars.bound_contextvars(
            request_id=request_id, language=request.language, mode=request.mode.value
        ):
            check = self.validate(request)
            if not check.passed:
                logger.warning("Code blocked by validator", issues=list(check.issues))
                raise ValidationFailed(check.issues)

            profile = self.registry.get(request.language)
            if request.mode == ExecutionMode.PREVIEW and profile.supports_preview:
                return self.preview(request)

            return await self.execute(request, request_id)

    def preview(self, request: ExecutionRequest) -> DependencyManifest:
        """Static import-graph analysis; nothing is executed."""
        profile = self.registry.get(request.language)
        resolver = DependencyResolver(extension=profile.extension)
        manifest = resolver.resolve(request.entry_file, request.files)
        logger.info("Preview analysis finished", dependencies=sorted(manifest.dependencies))
        return manifest

    async def execute(
        self, request: ExecutionRequest, request_id: str | None = None
    ) -> NormalizedOutput:
        """Run *request* in a fresh workspace and normalize the output."""
        if not self._initialized:
            await self.initialize()

        profile = self.registry.get(request.language)
        async with self.workspaces.session(request_id or uuid4().hex[:12], request.files) as workspace:
            result = await self.backend.execute(profile, workspace, request.entry_file)

        logger.info(
            "Code execution finished",
            outcome=result.outcome.value,
            exit_code=result.exit_code,
            duration=f"{result.execution_time:.2f}s",
        )
        return self._finish(result)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _finish(result: SandboxResult) -> NormalizedOutput:
        if result.outcome == ExecutionOutcome.BACKEND_ERROR:
            # Partial output is still worth returning to the user
            if not (result.stdout.strip() or result.stderr.strip()):
                raise SandboxBackendError(result.error or "Execution failed")
            logger.warning("Returning partial output after backend error", error=result.error)
        return normalize(result)
