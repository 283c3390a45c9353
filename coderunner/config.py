"""
Configuration management for the code runner service.
Supports environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SandboxConfig(BaseSettings):
    """Sandbox execution configuration."""

    model_config = SettingsConfigDict(env_prefix="SANDBOX_")

    backend: Literal["remote", "container"] = Field(
        default="remote",
        description="Execution backend: remote execution service or local Docker containers"
    )
    execution_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Wall-clock limit for a single program run in seconds"
    )
    workspace_root: str | None = Field(
        default=None,
        description="Directory holding per-request workspaces (system temp dir if unset)"
    )

    # Container limits
    memory_limit: str = Field(default="128m", description="Container memory limit")
    cpu_period: int = Field(default=100000, description="CFS period in microseconds")
    cpu_quota: int = Field(
        default=50000,
        description="CFS quota in microseconds (50000/100000 = half a CPU)"
    )
    pids_limit: int = Field(default=64, description="Maximum processes per container")
    network_enabled: bool = Field(default=False, description="Allow container networking")
    container_workdir: str = Field(default="/workspace", description="Workdir inside the container")
    pull_images: bool = Field(
        default=True,
        description="Pull missing language images on demand"
    )
    max_output_size: int = Field(
        default=64 * 1024,
        description="Maximum characters kept per captured stream"
    )


class RemoteServiceConfig(BaseSettings):
    """Remote execution service (Piston API) configuration."""

    model_config = SettingsConfigDict(env_prefix="REMOTE_")

    url: str = Field(
        default="https://emkc.org/api/v2/piston/execute",
        description="Execution endpoint URL"
    )
    request_timeout: float = Field(
        default=30.0,
        description="HTTP timeout for one execution request in seconds"
    )
    run_timeout_ms: int | None = Field(
        default=None,
        description="Run stage timeout forwarded to the service (service default if unset)"
    )
    compile_timeout_ms: int | None = Field(
        default=None,
        description="Compile stage timeout forwarded to the service (service default if unset)"
    )


class ServerConfig(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3001, description="Server port")
    workers: int = Field(default=1, description="Number of workers")
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__"
    )

    app_name: str = "Code Runner"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = Field(default=False, description="Debug mode")

    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    remote: RemoteServiceConfig = Field(default_factory=RemoteServiceConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @field_validator("debug", mode="before")
    @classmethod
    def validate_debug(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes", "on")
        return False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
