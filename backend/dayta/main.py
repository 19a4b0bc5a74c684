"""ASGI entry-point for the FastAPI application.

This module
1. instantiates the :class:`fastapi.FastAPI` application;
2. wires the API routers aggregated in ``dayta.api``;
3. registers global exception handlers and middleware; and
4. performs a few start-up sanity checks (log directory, report storage
   writable, database schema present).

Every error leaves the service as a JSON object with at least an ``error``
string; nothing falls through to the server's default error page.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dayta.api import api_router
from dayta.db.database import create_tables
from dayta.errors import DaytaError
from dayta.logging_config import LOG_DIR as APP_LOG_DIR
from dayta.logging_config import setup_logging
from dayta.utils.storage import DATA_ROOT, REPORTS_DIR, ensure_dir_exists


# ---------------------------------------------------------------------------
# Logging must be configured as soon as possible so that any errors during
# import/start-up are captured.
# ---------------------------------------------------------------------------
setup_logging()
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:  # noqa: D401 – factory nomenclature is fine
    """Wire and return the FastAPI application instance."""

    app = FastAPI(
        title="DaytaTech Task API",
        version="0.1.0",
        docs_url="/api/docs",
    )

    # ------------------------------------------------------------------
    # Start-up checks
    # ------------------------------------------------------------------

    @app.on_event("startup")
    async def _startup_checks() -> None:  # noqa: D401
        logger.info("Running start-up checks …")

        for path in (APP_LOG_DIR, DATA_ROOT, REPORTS_DIR):
            try:
                ensure_dir_exists(Path(path))
            except OSError as exc:
                logger.critical("Cannot create/access directory %s – %s", path, exc)
            else:
                writable = os.access(str(path), os.W_OK)
                logger.info("Directory %s is %swritable", path, "" if writable else "NOT ")

        # Development convenience; real deployments run migrations
        try:
            create_tables()
        except Exception as exc:  # pragma: no cover
            logger.exception("Failed to create DB schema: %s", exc)

        logger.info("Start-up checks finished.")

    # ------------------------------------------------------------------
    # Exception handlers
    # ------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(  # noqa: D401
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        logger.error("Request validation error: %s", exc.errors())
        return JSONResponse(status_code=422, content={"error": "Invalid request", "detail": exc.errors()})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(  # noqa: D401
        _request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        logger.error("HTTP exception %s: %s", exc.status_code, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(DaytaError)
    async def _app_error_handler(  # noqa: D401
        _request: Request,
        exc: DaytaError,
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Application exception: %s", exc.detail, exc_info=exc)
        else:
            logger.warning("Rejected request (%s): %s", exc.status_code, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def _generic_error_handler(  # noqa: D401
        _request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error", "details": str(exc)})

    # ------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api")

    @app.get("/api/health")
    async def _health() -> dict[str, str]:  # noqa: D401
        return {"status": "ok"}

    return app


# Instantiate at import time so `uvicorn dayta.main:app` works.
app: FastAPI = create_app()
