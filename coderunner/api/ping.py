"""
Liveness check route.
"""

from fastapi import APIRouter

from coderunner.models.schemas import PingResponse

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", response_model=PingResponse, summary="Liveness check")
async def ping() -> PingResponse:
    return PingResponse(message="Pong! Server is alive.")
