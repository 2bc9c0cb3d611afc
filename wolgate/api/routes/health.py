"""Health check."""

from fastapi import APIRouter

from wolgate import __version__
from wolgate.schemas.system import HealthResponse
from wolgate.services import get_listener

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Lightweight liveness check; reports whether the UDP listener is bound."""
    try:
        listening = get_listener().is_listening
    except RuntimeError:
        listening = False
    return HealthResponse(version=__version__, listening=listening)


@router.get("/ping")
async def ping():
    """Ultra-lightweight ping."""
    return {"status": "ok"}
