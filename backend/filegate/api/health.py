"""
Health check endpoint.
Reports whether a storage backend was built from configuration.
"""
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

router = APIRouter()


@router.get("")
async def health_check(request: Request):
    """
    Health check endpoint.
    Returns the active storage backend, or 503 when none is available.
    """
    backend = getattr(request.app.state, "storage_backend", None)
    if backend is None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "storage": "unavailable",
                "error": getattr(request.app.state, "storage_error", None)
                or "Storage backend not configured",
            },
        )

    return {
        "status": "healthy",
        "storage": backend.name
    }
