"""
Simulator Sessions - Main Application
=====================================

FastAPI application entry point for the simulator session service.

This module sets up:
- FastAPI application with CORS
- Route registration
- WebSocket line-protocol endpoint
- Middleware (logging, error handling)
- Lifespan management (service graph at startup, shutdown sweep at exit)

Usage:
    # Development
    uvicorn simsessions.main:app --reload --host 127.0.0.1 --port 8000

    # Or
    python -m simsessions serve
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from simsessions import __version__
from simsessions.api.dispatcher import failure_payload
from simsessions.api.routes import health_router, media_router, sessions_router, simulator_router, ui_router
from simsessions.api.websocket import websocket_endpoint
from simsessions.config import get_settings
from simsessions.core.errors import InvalidParameter, SessionError, SessionNotFound
from simsessions.services import Services
from simsessions.utils.logger import get_logger, setup_logging

# Setup logging
settings = get_settings()
setup_logging(
    level=settings.server.log_level,
    json_logs=not settings.server.debug,
)

logger = get_logger(__name__)

STATUS_BY_CATEGORY = {
    "input_error": 400,
    "state_error": 409,
    "collaborator_error": 502,
    "internal_invariant_error": 500,
}


def status_for(error: SessionError) -> int:
    """HTTP status code for a categorized error."""
    if isinstance(error, SessionNotFound):
        return 404
    return STATUS_BY_CATEGORY.get(error.category, 500)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the service graph unless one was injected on ``app.state``, and
    releases every session on shutdown.
    """
    logger.info(
        "Starting simulator session service",
        version=__version__,
        environment=settings.server.environment,
    )

    services = getattr(app.state, "services", None)
    if services is None:
        services = Services.from_settings(settings)
        app.state.services = services

    yield

    logger.info("Shutting down simulator session service")
    report = await services.shutdown()
    logger.info("Shutdown complete", **report.summary())


# Create FastAPI application
app = FastAPI(
    title="Simulator Sessions",
    description=(
        "Session-scoped iOS simulator control. Each client session owns one "
        "simulator; accessibility frames are reported in a canonical "
        "portrait frame regardless of device rotation."
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.server.debug else None,
    redoc_url="/redoc" if settings.server.debug else None,
    openapi_url="/openapi.json" if settings.server.debug else None,
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.server.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log each HTTP request with its status and duration; health checks log at debug."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = round((time.perf_counter() - start) * 1000, 2)

    log = logger.debug if request.url.path.startswith("/health") else logger.info
    log(
        "Request handled",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
    )
    return response


@app.exception_handler(SessionError)
async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
    """Map categorized errors to status codes."""
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Operation failed",
        path=request.url.path,
        method=request.method,
        category=exc.category,
        error=exc.message,
    )
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as input errors."""
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    error = InvalidParameter(f"Invalid parameters: {details}")
    return JSONResponse(status_code=400, content={"error": error.to_dict()})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.exception(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    payload = failure_payload(exc)
    if not settings.server.debug:
        payload["message"] = "An unexpected error occurred"
    return JSONResponse(status_code=500, content={"error": payload})


# Register routers
app.include_router(health_router)
app.include_router(sessions_router)
app.include_router(ui_router)
app.include_router(media_router)
app.include_router(simulator_router)


# WebSocket endpoint
@app.websocket("/ws")
async def ws_endpoint(websocket: WebSocket) -> None:
    """
    WebSocket endpoint for the line protocol.

    Each frame is one JSON request; each response names the request ``id``.
    """
    await websocket_endpoint(websocket)

