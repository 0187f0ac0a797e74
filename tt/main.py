"""
tt API Server

Application factory for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tt import __version__
from tt.api import router as api_router
from tt.core.broadcast import Broadcaster
from tt.core.config import Settings, get_settings
from tt.core.events import ServerEvent
from tt.core.exceptions import TTError, ValidationError
from tt.core.middleware import AccessLogMiddleware
from tt.schemas.common import ErrorBody, ErrorResponse
from tt.services.store import SQLThingStore, ThingStore

log = structlog.get_logger("tt.main")


def error_response(code: str, message: str, status: int, details: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(code=code, message=message, status=status, details=details or None))
    return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ThingStore] = None,
    broadcaster: Optional[Broadcaster[ServerEvent]] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Anything not passed in is built from settings. The app owns the store and
    broadcaster from then on: both are closed when the app shuts down.
    """
    settings = settings or get_settings()
    if store is None:
        store = SQLThingStore.from_settings(settings)
    if broadcaster is None:
        broadcaster = Broadcaster(buffer_size=settings.sse_listener_buffer)

    app = FastAPI(
        title="tt",
        description="Track temporary things and who should hear about their removal.",
        version=__version__,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.broadcaster = broadcaster

    app.add_middleware(AccessLogMiddleware)

    app.include_router(api_router)

    @app.exception_handler(TTError)
    async def tt_error_handler(request: Request, exc: TTError):
        if exc.status >= 500:
            log.error("request.failed", path=request.url.path, code=exc.code, error=exc.message)
        return error_response(exc.code, exc.message, exc.status, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return error_response(
            ValidationError.code,
            ValidationError.default_message(),
            ValidationError.status,
            {"errors": errors},
        )

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        broadcaster.start()
        log.info("tt starting", version=__version__)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("tt shutting down")
        await broadcaster.shutdown()
        await store.close()

    return app
