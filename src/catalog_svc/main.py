"""FastAPI entry point for the catalog service.

Start with:
    PYTHONPATH=src uvicorn catalog_svc.main:app --host 0.0.0.0 --port 8060

Serves:
- /catalogs/*        - catalog CRUD, entry links, collaborators
- /catalog-shares/*  - invitations addressed to the caller
- /ws                - real-time catalog rooms (WebSocket)
- GET /health        - liveness
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from . import _bootstrap as bs
from . import routes as catalog_routes
from .config import Config
from .errors import CatalogServiceError, DuplicateInvitationError
from .realtime import routes as realtime_routes

logger = logging.getLogger(__name__)


def _validation_detail(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {error.get('msg')}" if loc else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def install_error_handlers(app: FastAPI) -> None:
    """Map service errors to ``{"error": kind, "detail": message}`` bodies."""

    @app.exception_handler(CatalogServiceError)
    async def service_error_handler(_: Request, exc: CatalogServiceError):
        content: dict = {"error": exc.kind, "detail": exc.message}
        if isinstance(exc, DuplicateInvitationError):
            content["data"] = {"invitation": exc.existing.to_dict()}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "validation_error", "detail": _validation_detail(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException):
        kind = "unauthorized" if exc.status_code == 401 else "http_error"
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": kind, "detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(_: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal_error", "detail": "Internal server error"},
        )


def create_app(config: Config | None = None, *, users=None, entries=None, notifier=None) -> FastAPI:
    """
    Build the application.

    Args:
        config: Service config; loaded from ``CATALOG_SVC_CONFIG`` when omitted
        users: User directory (defaults to in-memory)
        entries: Entry directory (defaults to in-memory)
        notifier: Notification dispatcher (defaults to logging only)
    """
    if config is None:
        config, _ = bs.load_config()
    bs.configure_logging(config.logging)

    components = bs.build_components(config, users=users, entries=entries, notifier=notifier)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting catalog service...")

        bs.configure_auth(config)
        bs.initialize_realtime(config, components)

        catalog_routes.configure(service=components.service)
        realtime_routes.configure(
            broadcaster=components.broadcaster,
            max_message_bytes=config.realtime.max_message_bytes,
        )

        logger.info("Catalog service started")
        yield

        await components.broadcaster.shutdown()
        logger.info("Catalog service stopped")

    app = FastAPI(
        title="Catalog Service",
        description="Shared observation catalogs with real-time collaboration.",
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Catalogs", "description": "Catalog CRUD and entry links"},
            {"name": "Sharing", "description": "Collaborators and invitations"},
            {"name": "Realtime", "description": "WebSocket catalog rooms"},
            {"name": "Health", "description": "Liveness"},
        ],
    )
    app.state.config = config
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.realtime.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(catalog_routes.router)
    app.include_router(realtime_routes.router)

    @app.get("/health", tags=["Health"])
    async def health():
        hub = components.broadcaster.hub
        return {
            "status": "ok",
            "realtime": hub is not None,
            "connections": hub.connection_count if hub else 0,
        }

    return app


app = create_app()
