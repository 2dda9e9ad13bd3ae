"""Health check endpoint."""

from fastapi import APIRouter
from pydantic import BaseModel

from infrakit_instance import __version__
from infrakit_instance.api.dependencies import plugin_ready
from infrakit_instance.config import get_plugin_config

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    backend: str
    plugin_ready: bool


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness plus whether the backend plugin finished init()."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        backend=get_plugin_config().backend,
        plugin_ready=plugin_ready(),
    )
