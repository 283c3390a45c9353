"""
Request and response schemas for the code runner API.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ExecRequest(BaseModel):
    """Execution API request.

    Presence rules (language plus either ``code`` or ``entry`` + ``files``) are
    checked by the executor so that they surface as a 400 with the usual
    error body rather than a schema error.
    """

    language: str | None = Field(default=None, description="Language tag, e.g. python or node")
    code: str | None = Field(default=None, description="Inline single-file source")
    entry: str | None = Field(default=None, description="Entry filename within files")
    files: dict[str, str] | None = Field(default=None, description="Filename to source text")
    mode: Literal["execute", "preview"] = Field(default="execute", description="Request mode")


class ExecResponse(BaseModel):
    """Captured program output."""

    stdout: str = Field(description="Trimmed standard output")
    stderr: str = Field(description="Trimmed standard error")


class PackageJson(BaseModel):
    """package.json-style manifest produced in preview mode."""

    name: str = Field(default="live-preview-project")
    version: str = Field(default="1.0.0")
    dependencies: dict[str, str] = Field(default_factory=dict)


class PreviewResponse(BaseModel):
    """Preview-mode response."""

    model_config = ConfigDict(populate_by_name=True)

    output: str = Field(default="Dependency analysis completed in preview mode.")
    package_json: PackageJson = Field(alias="packageJson")


class ErrorResponse(BaseModel):
    """Error response."""

    error: str = Field(description="Error message")
    issues: list[str] | None = Field(default=None, description="Validation issues")


class PingResponse(BaseModel):
    message: str
