"""
API router aggregator.
Includes all route modules.
"""
from fastapi import APIRouter
from filegate.api import health, files

api_router = APIRouter()

# Include route modules
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(files.router, prefix="/files", tags=["files"])
