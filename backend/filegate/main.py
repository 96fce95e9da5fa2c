"""
FastAPI application entry point.
Sets up the API with lifespan events for storage backend initialization.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException

from filegate.config import settings
from filegate.api.router import api_router
from filegate.middleware.metrics_middleware import MetricsMiddleware
from filegate.storage.errors import (
    BackendConfigurationError,
    BackendUnavailableError,
    InvalidArgumentError,
    InvalidPathError,
    NotFoundError,
    StorageError,
)
from filegate.storage.factory import create_storage_backend
from filegate.utils.logging import configure_logging, log_backend_unavailable

logger = logging.getLogger(__name__)

# Most specific classes first
ERROR_STATUS_CODES = (
    (InvalidArgumentError, 400),
    (InvalidPathError, 400),
    (NotFoundError, 404),
    (BackendUnavailableError, 500),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    - Startup: Build the storage backend once from configuration
    - Shutdown: Drop the backend reference
    """
    # Configure structured JSON logging
    configure_logging('filegate-api', settings.log_level)

    app.state.storage_backend = None
    app.state.storage_error = None
    try:
        app.state.storage_backend = create_storage_backend(settings)
    except BackendConfigurationError as e:
        log_backend_unavailable(logger, e.message, environment=settings.environment)
        # In production, fail fast at startup
        if settings.environment == "production":
            raise
        # Elsewhere keep serving health checks; file requests fail with BackendUnavailable
        app.state.storage_error = e.message

    yield

    app.state.storage_backend = None


# Create FastAPI app
app = FastAPI(
    title="File Gateway API",
    description="Upload, delete, copy and upload-policy issuance over pluggable object storage",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware (browser clients fetch upload policies)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Metrics middleware (must be after CORS to track all requests)
app.add_middleware(MetricsMiddleware)

# Include API routes
app.include_router(api_router, prefix="/api")


def error_status_code(exc: StorageError) -> int:
    """Map a storage error onto an HTTP status code."""
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return 500


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    """Translate storage errors into the error envelope."""
    return JSONResponse(
        status_code=error_status_code(exc),
        content={"error": exc.message, "code": exc.code}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Binding failures are the caller's fault: 400 instead of FastAPI's 422."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"error": f"bad request: {details}" if details else "bad request", "code": "bad_request"}
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Keep the error envelope for plain HTTP errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": "http_error"},
        headers=getattr(exc, "headers", None)
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "File Gateway API",
        "version": "0.1.0",
        "environment": settings.environment
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
