"""
FastAPI application factory.

Every ``MoverError`` becomes ``{"error": message}`` with the error's status
code; malformed request bodies become a 400 in the same shape.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import AppConfig
from ..exceptions import MoverError
from ..services import Services, build_services
from .routes import router

__all__ = ["create_app"]

logger = logging.getLogger(__name__)


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Invalid request: " + "; ".join(parts)


def create_app(
    config: AppConfig | None = None,
    services: Services | None = None,
) -> FastAPI:
    """Build the application.

    Pass *services* to use pre-built components (tests); otherwise they are
    built from *config* at startup and closed at shutdown.
    """
    if services is None and config is None:
        raise ValueError("create_app needs either a config or services")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "services", None) is None:
            owned = build_services(config)
            app.state.services = owned
            logger.info("Metadata store ready at %s", config.database.url)
        try:
            yield
        finally:
            if owned is not None:
                owned.close()

    app = FastAPI(
        title="ns-migrator",
        description="Instance migration and namespace cloning across storage namespaces",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    @app.exception_handler(MoverError)
    async def mover_error_handler(request: Request, exc: MoverError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        else:
            logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _format_validation_errors(exc)})

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    app.include_router(router, prefix="/api")
    return app
