"""
Typed errors raised by storage backends and the policy issuer.

Every backend operation surfaces one of these to its caller; the HTTP
layer maps them to status codes in main.py.
"""
from typing import Optional


class StorageError(Exception):
    """Base class for all storage errors."""

    code = "storage_error"

    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        super().__init__(message)


class InvalidArgumentError(StorageError, ValueError):
    """Malformed or missing input. Caller's fault, never retried."""

    code = "invalid_argument"


class InvalidPolicyError(InvalidArgumentError):
    """Policy string is malformed or its signature does not match."""

    code = "invalid_policy"


class PolicyExpiredError(InvalidArgumentError):
    """Policy was valid but its expiration has passed."""

    code = "policy_expired"


class NotFoundError(StorageError):
    """Referenced object (local or remote) does not exist."""

    code = "not_found"


class InvalidPathError(StorageError):
    """Path violates backend naming rules."""

    code = "invalid_path"


class BackendUnavailableError(StorageError):
    """Transient provider or transport failure. Safe to retry above the core."""

    code = "backend_unavailable"


class DeadlineExceededError(BackendUnavailableError):
    """Operation ran past its deadline."""

    code = "deadline_exceeded"


class OperationCancelledError(BackendUnavailableError):
    """Caller cancelled the operation."""

    code = "operation_cancelled"


class BackendConfigurationError(BackendUnavailableError):
    """No usable backend could be built from configuration."""

    code = "backend_unavailable"
