"""
Pydantic schemas for API request/response validation.
"""
from filegate.schemas.files import (
    CopyRequest,
    DeleteRequest,
    ErrorResponse,
    PolicyRequest,
    SuccessResponse,
    UploadRequest,
)

__all__ = [
    "UploadRequest",
    "DeleteRequest",
    "CopyRequest",
    "PolicyRequest",
    "SuccessResponse",
    "ErrorResponse",
]
