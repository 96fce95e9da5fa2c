"""
Storage backends for the file gateway.

The gateway talks only to StorageBackend; concrete adapters (local disk,
S3-compatible object storage, in-memory) are selected by configuration.
"""
from filegate.storage.base import StorageBackend, validate_remote_path
from filegate.storage.deadline import Deadline
from filegate.storage.errors import (
    BackendConfigurationError,
    BackendUnavailableError,
    DeadlineExceededError,
    InvalidArgumentError,
    InvalidPathError,
    InvalidPolicyError,
    NotFoundError,
    OperationCancelledError,
    PolicyExpiredError,
    StorageError,
)
from filegate.storage.factory import create_storage_backend
from filegate.storage.local import LocalStorageBackend
from filegate.storage.memory import InMemoryStorageBackend
from filegate.storage.policy import CallbackInstruction, PolicyDocument, PolicyIssuer

__all__ = [
    "StorageBackend",
    "validate_remote_path",
    "Deadline",
    "StorageError",
    "InvalidArgumentError",
    "InvalidPolicyError",
    "PolicyExpiredError",
    "NotFoundError",
    "InvalidPathError",
    "BackendUnavailableError",
    "DeadlineExceededError",
    "OperationCancelledError",
    "BackendConfigurationError",
    "create_storage_backend",
    "LocalStorageBackend",
    "InMemoryStorageBackend",
    "PolicyIssuer",
    "PolicyDocument",
    "CallbackInstruction",
]
