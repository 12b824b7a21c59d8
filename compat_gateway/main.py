"""Compat gateway FastAPI application entry point."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from compat_gateway import __version__
from compat_gateway.config import Settings, get_settings
from compat_gateway.db import close_db, get_session_factory, init_db
from compat_gateway.errors import GatewayError, ValidationError
from compat_gateway.runtime import GatewayRuntime
from compat_gateway.services.upstream import Collaborators
from compat_gateway.utils.log import configure_logging

logger = structlog.get_logger()


def create_app(
    settings: Settings | None = None,
    *,
    collaborators: Collaborators | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Settings to use instead of the cached global ones.
        collaborators: Upstream collaborators to use instead of the ones
            derived from ``settings.upstream``.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        # Startup
        configure_logging(settings.logging)
        logger.info("gateway.startup", version=__version__)
        await init_db(settings.database)

        runtime = GatewayRuntime.build(
            settings,
            get_session_factory(),
            collaborators=collaborators,
        )
        app.state.runtime = runtime
        await runtime.start()

        yield

        # Shutdown
        logger.info("gateway.shutdown")
        await runtime.stop()
        await close_db()

    app = FastAPI(
        title="Compat Gateway",
        description="Device and network compatibility lookups",
        version=__version__,
        lifespan=lifespan,
    )

    # Request ID middleware
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add request ID to all requests and bind it to log context."""
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-Id"] = request_id
        return response

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        """Handle gateway errors with consistent format."""
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(request_id),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        request_id = getattr(request.state, "request_id", None)
        error = ValidationError(
            "Request validation failed",
            details={
                "errors": [
                    {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
                    for e in exc.errors()
                ]
            },
        )
        return JSONResponse(status_code=error.status_code, content=error.to_dict(request_id))

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    from compat_gateway.api.v1 import router as v1_router
    from compat_gateway.api.web import router as web_router

    app.include_router(v1_router, prefix="/v1")
    app.include_router(web_router)

    return app


# Create default app instance
app = create_app()


def run() -> None:
    """Serve the default app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "compat_gateway.main:app",
        host=settings.server.host,
        port=settings.server.port,
    )


if __name__ == "__main__":
    run()
