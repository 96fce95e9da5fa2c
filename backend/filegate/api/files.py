"""
File management endpoints.

Implements the gateway operations on top of the injected storage backend:
1. POST /files/upload - Upload a file through the gateway
2. POST /files/delete - Delete one object
3. POST /files/copy - Server-side copy
4. POST /files/upload_policy - Issue a policy for direct-to-storage upload

Backend calls may block on network I/O, so they run on worker threads with
a per-request Deadline. If the request task is cancelled, the deadline is
cancelled too and the worker stops at its next checkpoint.
"""
import asyncio
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from filegate.api.dependencies import bind_body, get_storage_backend
from filegate.config import settings
from filegate.schemas.files import (
    CopyRequest,
    DeleteRequest,
    ErrorResponse,
    PolicyRequest,
    SuccessResponse,
    UploadRequest,
)
from filegate.storage.base import StorageBackend
from filegate.storage.deadline import Deadline
from filegate.storage.errors import StorageError
from filegate.utils.logging import log_storage_failure, log_storage_operation
from filegate.utils.metrics import (
    storage_operation_duration_seconds,
    storage_operations_total,
    upload_policies_issued_total,
)

router = APIRouter()
logger = logging.getLogger(__name__)

# Legacy status code clients expect for successful delete/copy
SUCCESS_STATUS = 10000

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Malformed request or invalid path"},
    404: {"model": ErrorResponse, "description": "Object not found"},
    500: {"model": ErrorResponse, "description": "Storage backend unavailable"},
}


async def call_backend(backend: StorageBackend, operation: str, func, *args, remote_path=None):
    """
    Run a blocking backend call off the event loop with a deadline,
    recording metrics and structured logs for the outcome.
    """
    deadline = Deadline(settings.storage_operation_timeout)
    start_time = time.perf_counter()
    try:
        result = await asyncio.to_thread(func, *args, deadline=deadline)
    except asyncio.CancelledError:
        deadline.cancel()
        raise
    except StorageError as e:
        duration = time.perf_counter() - start_time
        storage_operations_total.labels(
            backend=backend.name, operation=operation, outcome=e.code
        ).inc()
        storage_operation_duration_seconds.labels(
            backend=backend.name, operation=operation
        ).observe(duration)
        log_storage_failure(
            logger,
            backend=backend.name,
            operation=operation,
            error=e.message,
            error_code=e.code,
            remote_path=remote_path,
            duration_ms=duration * 1000,
        )
        raise

    duration = time.perf_counter() - start_time
    storage_operations_total.labels(
        backend=backend.name, operation=operation, outcome="success"
    ).inc()
    storage_operation_duration_seconds.labels(
        backend=backend.name, operation=operation
    ).observe(duration)
    log_storage_operation(
        logger,
        backend=backend.name,
        operation=operation,
        remote_path=remote_path,
        duration_ms=duration * 1000,
    )
    return result


def _spool_upload(upload: UploadFile) -> str:
    """Write the uploaded body to a private temp file and return its path."""
    suffix = Path(upload.filename or "").suffix
    fd, path = tempfile.mkstemp(prefix="filegate_", suffix=suffix, dir=settings.upload_tmp_dir)
    try:
        with os.fdopen(fd, "wb") as out:
            shutil.copyfileobj(upload.file, out)
    except BaseException:
        os.unlink(path)
        raise
    return path


@router.post("/upload", response_model=SuccessResponse, responses=ERROR_RESPONSES)
async def upload_file(
    file: UploadFile = File(..., description="File data"),
    remote_file_path: str = Form(..., alias="remoteFilePath", description="Destination key"),
    backend: StorageBackend = Depends(get_storage_backend),
):
    """
    Upload a file through the gateway.

    The body is spooled to a temp file, sent to the backend, and the temp
    file is removed on every exit path.
    """
    try:
        local_source = await asyncio.to_thread(_spool_upload, file)
    except OSError as e:
        logger.error(f"Failed to spool upload {file.filename}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to receive uploaded file"
        )

    try:
        try:
            request = UploadRequest(local_source=local_source, remote_path=remote_file_path)
        except ValidationError as e:
            raise RequestValidationError(e.errors())

        await call_backend(
            backend,
            "upload",
            backend.upload_local_file,
            request.local_source,
            request.remote_path,
            remote_path=request.remote_path,
        )
    finally:
        os.unlink(local_source)

    return SuccessResponse(status=file.filename or request.remote_path, message="success")


@router.post("/delete", response_model=SuccessResponse, responses=ERROR_RESPONSES)
async def delete_file(
    request: DeleteRequest = Depends(bind_body(DeleteRequest)),
    backend: StorageBackend = Depends(get_storage_backend),
):
    """
    Delete one object. Deleting a missing object succeeds.
    """
    await call_backend(
        backend,
        "delete",
        backend.delete_single_file,
        request.remote_path,
        remote_path=request.remote_path,
    )
    return SuccessResponse(status=SUCCESS_STATUS, message="success")


@router.post("/copy", response_model=SuccessResponse, responses=ERROR_RESPONSES)
async def copy_file(
    request: CopyRequest = Depends(bind_body(CopyRequest)),
    backend: StorageBackend = Depends(get_storage_backend),
):
    """
    Copy an object inside the backend without downloading it.
    """
    await call_backend(
        backend,
        "copy",
        backend.copy_file,
        request.src_path,
        request.dst_path,
        remote_path=request.dst_path,
    )
    return SuccessResponse(status=SUCCESS_STATUS, message="success")


@router.post(
    "/upload_policy",
    response_class=PlainTextResponse,
    responses=ERROR_RESPONSES,
)
async def get_upload_policy(
    request: PolicyRequest = Depends(bind_body(PolicyRequest)),
    backend: StorageBackend = Depends(get_storage_backend),
):
    """
    Issue a signed, time-limited upload policy.

    The client presents the returned string to the storage backend to
    upload directly; after the upload the backend posts callbackBody to
    callbackURL. The response body is the raw policy string.
    """
    policy = await call_backend(
        backend,
        "upload_policy",
        backend.get_upload_policy,
        request.remote_path,
        request.callback_url,
        request.callback_body,
        remote_path=request.remote_path,
    )
    upload_policies_issued_total.labels(backend=backend.name).inc()
    return PlainTextResponse(policy)
