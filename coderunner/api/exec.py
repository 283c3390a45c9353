"""
Code execution API routes.
"""

from fastapi import APIRouter, Depends
from structlog import get_logger

from coderunner.models.schemas import (
    ErrorResponse,
    ExecRequest,
    ExecResponse,
    PackageJson,
    PreviewResponse,
)
from coderunner.sandbox.executor import CodeExecutor
from coderunner.sandbox.models import DependencyManifest
from coderunner.services.executor_service import get_executor

logger = get_logger()
router = APIRouter(prefix="/exec", tags=["exec"])


@router.post(
    "",
    response_model=ExecResponse | PreviewResponse,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse}
    },
    summary="Validate and run code",
    description="Screen submitted code and either execute it in the sandbox or analyze its imports"
)
async def execute_code(
    request: ExecRequest,
    executor: CodeExecutor = Depends(get_executor)
) -> ExecResponse | PreviewResponse:
    """
    Validate and run submitted code.

    - **language**: python, javascript/node, c, cpp or java
    - **code**: inline source, or **entry** plus **files** for multi-file programs
    - **mode**: `execute` (default) or `preview` (JavaScript only, no execution)

    Request-shape and validation errors return 400; a program that crashes or
    times out still returns 200 with its output.
    """
    execution = executor.prepare(
        language=request.language,
        code=request.code,
        entry=request.entry,
        files=request.files,
        mode=request.mode,
    )
    result = await executor.run(execution)

    if isinstance(result, DependencyManifest):
        return PreviewResponse(package_json=PackageJson(dependencies=result.dependencies))
    return ExecResponse(stdout=result.stdout, stderr=result.stderr)
