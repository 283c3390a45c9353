"""
Code Runner - Main Application Entry Point.

Validates untrusted source code and runs it in an isolated sandbox.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coderunner.api import exec_router, ping_router
from coderunner.collab import router as collab_router
from coderunner.config import get_settings
from coderunner.errors import CodeRunnerError
from coderunner.services import executor_lifespan

settings = get_settings()

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.environment == "production"
        else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        10 if settings.debug else 20
    )
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    async with executor_lifespan(app):
        yield


# Create FastAPI application
app = FastAPI(
    title="Code Runner",
    description="""
Validates and executes untrusted code in an isolated sandbox.

## Features

- **Static screening**: per-language deny-lists for Python, JavaScript, C, C++ and Java
- **Sandboxed execution**: remote execution service or local Docker containers with
  memory, CPU, network and wall-clock limits
- **Preview mode**: dependency manifest for JavaScript projects without execution
- **Collaboration relay**: room presence and edit forwarding over WebSocket

## Usage

POST `/api/exec` with `{language, code}` or `{language, entry, files}`.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.server.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(CodeRunnerError)
async def code_runner_exception_handler(request: Request, exc: CodeRunnerError) -> JSONResponse:
    """Map pipeline errors to their HTTP status and JSON body."""
    if exc.status_code >= 500:
        logger.error("Execution failed", path=request.url.path, error=exc.message)
    else:
        logger.info("Request rejected", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies are a client error like any other request-shape problem."""
    issues = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "issues": issues},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={"error": str(exc) or "Execution failed"}
    )


# Include routers
app.include_router(exec_router, prefix="/api")
app.include_router(ping_router, prefix="/api")
app.include_router(collab_router, prefix="/api")


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check() -> dict:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "backend": settings.sandbox.backend
    }


# Root endpoint
@app.get("/", tags=["root"])
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coderunner.main:app",
        host=settings.server.host,
        port=settings.server.port,
        workers=settings.server.workers,
        reload=settings.debug
    )
