"""URL Shield FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan — @asynccontextmanager startup/shutdown sequence
  - /health router — delegated to urlshield/health.py
  - /v1/check router — delegated to urlshield/api.py
  - /        route  — service discovery root
  - app = create_app() — module-level instance for uvicorn

Startup sequence:
  1. load_config()         → app.state.config
  2. create_http_client()  → app.state.http_client
  3. create_transport()    → app.state.transport   (live or demo)
  4. create_orchestrator() → app.state.orchestrator
  5. app.state.ready = True

Shutdown sequence (reverse):
  app.state.ready = False → close shared HTTP client
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter

from urlshield import __version__
from urlshield.api import router as check_router
from urlshield.checker.factory import create_orchestrator, create_transport
from urlshield.checker.transport import create_http_client
from urlshield.config import Config, load_config
from urlshield.health import router as health_router
from urlshield.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

root_router = APIRouter(tags=["root"])


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "URL Shield is starting up.",
            },
        )


# ─── Root Endpoint ────────────────────────────────────────────────────────────


@root_router.get("/")
async def root() -> dict[str, str]:
    """Root endpoint — service identity / discovery."""
    return {
        "service": "URL Shield",
        "tagline": "Check if a website is safe to visit",
        "check": "/v1/check",
        "health": "/health",
    }


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup and shutdown sequence."""
    logger.info("URL Shield starting up...")

    # load_config() raises SystemExit on an invalid file, so the process
    # exits non-zero before ready=True is ever set.
    config: Config = load_config()
    app.state.config = config

    http_client: httpx.AsyncClient = create_http_client(config.lookup.timeout_s)
    app.state.http_client = http_client
    logger.info("HTTP lookup client created", timeout_s=config.lookup.timeout_s)

    transport = create_transport(config, http_client)
    app.state.transport = transport
    app.state.orchestrator = create_orchestrator(config, transport)

    app.state.ready = True
    logger.info(
        "URL Shield ready",
        transport=config.lookup.transport,
        heuristics_enabled=config.heuristics.enabled,
    )

    yield

    logger.info("URL Shield shutting down...")
    app.state.ready = False

    try:
        await http_client.aclose()
        logger.info("HTTP lookup client closed")
    except Exception as exc:
        logger.warning("HTTP lookup client close error (non-fatal)", error=str(exc))

    logger.info("URL Shield shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the URL Shield FastAPI application.

    Call this function directly in tests to get an isolated app instance.
    The module-level `app` is created at import time for uvicorn.
    """
    # Swagger UI / ReDoc only with DEBUG=true.
    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title="URL Shield",
        description="Check whether a URL is likely malicious",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    # /health returns 503 on any request that arrives before startup completes.
    application.state.ready = False

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(check_router, dependencies=[Depends(require_ready)])

    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500, content={"error": "Internal server error"}
        )

    return application


app = create_app()
