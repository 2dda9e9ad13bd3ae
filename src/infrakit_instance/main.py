"""Instance plugin FastAPI application."""

import logging
import secrets
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager

import httpx
import uvicorn
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from infrakit_instance import __version__
from infrakit_instance.api.dependencies import close_plugin, init_plugin
from infrakit_instance.api.v1 import health_router, instances_router
from infrakit_instance.config import get_plugin_config
from infrakit_instance.errors import BackendCallError, InternalError, PluginError
from infrakit_instance.logging import setup_logging
from infrakit_instance.logging_schema import LogEvent

# Configure logging using config
_config = get_plugin_config()
setup_logging(_config.logging, backend=_config.backend)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(
        "Starting instance plugin",
        extra={
            "event": LogEvent.APP_STARTED,
            "version": __version__,
            "backend": _config.backend,
        },
    )
    await init_plugin()

    yield
    logger.info("Shutting down instance plugin", extra={"event": LogEvent.APP_STOPPED})
    await close_plugin()


app = FastAPI(
    title="Infrakit Instance Plugin",
    description="Provision, destroy and describe EBS volumes or VMware VMs",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(PluginError)
async def plugin_error_handler(request: Request, exc: PluginError) -> JSONResponse:
    """Handle PluginError exceptions."""
    logger.warning(
        "Plugin error",
        extra={
            "event": LogEvent.PLUGIN_ERROR,
            "error_code": exc.code.value,
            "error_message": exc.message,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


@app.exception_handler(ClientError)
@app.exception_handler(BotoCoreError)
@app.exception_handler(httpx.HTTPError)
async def backend_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render raw backend client failures as BACKEND_CALL_FAILED."""
    logger.warning(
        "Backend call failed",
        extra={
            "event": LogEvent.BACKEND_ERROR,
            "error_type": type(exc).__name__,
            "error_message": str(exc),
            "path": request.url.path,
            "method": request.method,
        },
    )
    error = BackendCallError(str(exc))
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_response().model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions with logging."""
    logger.exception(
        "Unhandled exception",
        extra={
            "event": LogEvent.UNHANDLED_EXCEPTION,
            "path": request.url.path,
            "method": request.method,
        },
    )
    error = InternalError()
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_response().model_dump(),
    )


_UNAUTHENTICATED_PATHS = frozenset({"/health", "/metrics", "/docs", "/openapi.json"})


@app.middleware("http")
async def api_key_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Require ``Authorization: Bearer <api_key>`` when an API key is configured."""
    api_key = get_plugin_config().server.api_key
    if not api_key or request.url.path in _UNAUTHENTICATED_PATHS:
        return await call_next(request)

    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not secrets.compare_digest(token, api_key):
        return JSONResponse(status_code=401, content={"detail": "Invalid API key"})

    return await call_next(request)


app.include_router(health_router)


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


app.include_router(instances_router, prefix="/api/v1")


def main() -> None:
    """Run the plugin server."""
    config = get_plugin_config()
    uvicorn.run(
        "infrakit_instance.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
