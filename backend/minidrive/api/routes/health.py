"""Health check."""

from fastapi import APIRouter

from minidrive import __version__
from minidrive.schemas.system import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Lightweight liveness check, no object store round-trip."""
    return HealthResponse(version=__version__)


@router.get("/ping")
async def ping():
    return {"status": "ok"}
