# src/marron_forum/main.py
"""Main entry point for the Marrón Forum application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from marron_forum.api.v1 import auth_router, posts_router, replies_router
from marron_forum.core.errors import ForumError, TransientStoreError
from marron_forum.core.logging import configure_logging
from marron_forum.core.settings import settings
from marron_forum.db.guard import TRANSIENT_ERRORS
from marron_forum.db.session import Database

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.log_level)
    owned = getattr(app.state, "database", None) is None
    if owned:
        app.state.database = Database.from_settings(settings)
    logger.info("Starting %s (%s)", settings.app_name, settings.environment)
    try:
        yield
    finally:
        if owned:
            app.state.database.dispose()
            app.state.database = None


# Initialize FastAPI app
app = FastAPI(
    title="Marrón Forum API",
    description="Anonymous workplace forum API",
    version=settings.app_version,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(posts_router, prefix="/api/v1")
app.include_router(replies_router, prefix="/api/v1")


@app.exception_handler(ForumError)
async def forum_error_handler(request: Request, exc: ForumError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "code": exc.code, "detail": exc.detail},
    )


async def transient_store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report store failures that escaped a ``store_guard`` as 503."""
    logger.warning("Store failure outside a guard on %s: %s", request.url.path, exc)
    return await forum_error_handler(request, TransientStoreError("Store unavailable"))


for _transient in TRANSIENT_ERRORS:
    app.add_exception_handler(_transient, transient_store_error_handler)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("marron_forum.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
