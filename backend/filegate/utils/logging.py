"""
Structured JSON logging for the gateway.

Every record carries timestamp, level, logger name, message and service.
Storage events add:
- event
- backend / operation
- remote_path
- duration_ms
- error / error_code (failures only)

Secrets and policy strings are never passed to these helpers.

Usage:
    from filegate.utils.logging import configure_logging, log_storage_operation

    configure_logging('filegate-api', 'INFO')
    log_storage_operation(logger, backend='s3', operation='copy', remote_path='a/b.png', duration_ms=45.2)
"""
import logging
import sys
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

# Failure codes that point at the backend rather than the caller
BACKEND_FAILURE_CODES = (None, "backend_unavailable", "deadline_exceeded")


class _ServiceFilter(logging.Filter):
    """Stamps the service name onto every record."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record):
        record.service = self.service_name
        return True


class StructuredLogger:
    """One-time setup of the JSON root handler."""

    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Replace root handlers with a single JSON handler on stdout.

        Args:
            service_name: Value of the service field (e.g. filegate-api)
            log_level: DEBUG, INFO, WARNING or ERROR
        """
        if cls._configured:
            return

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            jsonlogger.JsonFormatter(
                '%(timestamp)s %(levelname)s %(name)s %(message)s',
                timestamp=True,
                json_ensure_ascii=False
            )
        )
        handler.addFilter(_ServiceFilter(service_name))

        root = logging.getLogger()
        root.handlers = [handler]
        root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
        cls._configured = True


def _storage_fields(
    event: str,
    backend: Optional[str] = None,
    operation: Optional[str] = None,
    remote_path: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **fields
) -> Dict[str, Any]:
    """Collect the extra fields for a storage event, skipping unset ones."""
    extra: Dict[str, Any] = {"event": event, **fields}
    optional = {"backend": backend, "operation": operation, "remote_path": remote_path}
    extra.update({key: value for key, value in optional.items() if value})
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
    return extra


def log_storage_operation(
    logger: logging.Logger,
    backend: str,
    operation: str,
    remote_path: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **fields
):
    """Record a storage call that completed."""
    logger.info(
        f"Storage operation: {backend}.{operation}",
        extra=_storage_fields(
            "storage_operation", backend, operation, remote_path, duration_ms, **fields
        ),
    )


def log_storage_failure(
    logger: logging.Logger,
    backend: str,
    operation: str,
    error: str,
    error_code: Optional[str] = None,
    remote_path: Optional[str] = None,
    duration_ms: Optional[float] = None,
    include_traceback: bool = False,
    **fields
):
    """
    Record a storage call that failed.

    Caller errors (bad input, missing objects) go out at WARNING, backend
    failures at ERROR.

    Args:
        logger: Logger to write to
        backend: Backend name (local, s3, memory)
        operation: upload, delete, copy or upload_policy
        error: Error message
        error_code: StorageError code, if known
        remote_path: Key the call targeted
        duration_ms: Time spent before the failure
        include_traceback: Attach the active exception's stack trace
    """
    extra = _storage_fields(
        "storage_failure", backend, operation, remote_path, duration_ms,
        error=str(error), **fields
    )
    if error_code:
        extra["error_code"] = error_code

    if include_traceback or error_code in BACKEND_FAILURE_CODES:
        level = logging.ERROR
    else:
        level = logging.WARNING

    logger.log(
        level,
        f"Storage failure: {backend}.{operation} - {error}",
        extra=extra,
        exc_info=include_traceback and sys.exc_info()[0] is not None,
    )


def log_backend_unavailable(logger: logging.Logger, error: str, **fields):
    """Record that configuration produced no storage backend."""
    logger.error(
        f"Storage backend unavailable: {error}",
        extra=_storage_fields("backend_unavailable", error=str(error), **fields),
    )


def configure_logging(service_name: str, log_level: str = "INFO"):
    """Shorthand for StructuredLogger.configure."""
    StructuredLogger.configure(service_name, log_level)
