"""API v1 module."""

from infrakit_instance.api.v1.health import router as health_router
from infrakit_instance.api.v1.instances import router as instances_router

__all__ = [
    "health_router",
    "instances_router",
]
