"""
Base class for storage backends.
All providers must implement this interface so the gateway stays provider-agnostic.
"""
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

from filegate.storage.deadline import Deadline
from filegate.storage.errors import InvalidArgumentError, InvalidPathError, NotFoundError

# Most object stores cap keys at 1024 bytes; keep one byte of headroom
MAX_REMOTE_PATH_BYTES = 1023


def validate_remote_path(path: str, field: str = "remote path") -> str:
    """
    Check a remote path against the naming rules shared by all backends.

    Args:
        path: Remote object key
        field: Field name used in error messages

    Returns:
        The path, unchanged

    Raises:
        InvalidPathError: If the path is empty or violates naming rules
    """
    if not path:
        raise InvalidPathError(f"{field} must not be empty", path=path)
    if len(path.encode("utf-8")) > MAX_REMOTE_PATH_BYTES:
        raise InvalidPathError(
            f"{field} is longer than {MAX_REMOTE_PATH_BYTES} bytes", path=path
        )
    if path[0] in "/\\":
        raise InvalidPathError(f"{field} must not start with a separator", path=path)
    if any(ord(c) < 32 or ord(c) == 127 for c in path):
        raise InvalidPathError(f"{field} contains control characters", path=path)
    segments = path.replace("\\", "/").split("/")
    if any(segment in (".", "..") for segment in segments):
        raise InvalidPathError(f"{field} contains relative segments", path=path)
    # Trailing or doubled separators
    if any(segment == "" for segment in segments):
        raise InvalidPathError(f"{field} contains empty segments", path=path)
    return path


def require_local_source(local_source: str) -> str:
    """Reject an empty local source path before touching the filesystem."""
    if not local_source:
        raise InvalidArgumentError("local source path must not be empty")
    return local_source


def open_local_source(local_source: str) -> BinaryIO:
    """
    Open a local source file for reading.

    Raises:
        InvalidArgumentError: If local_source is empty
        NotFoundError: If the file cannot be opened for any reason
    """
    require_local_source(local_source)
    try:
        return open(local_source, "rb")
    except OSError as e:
        raise NotFoundError(
            f"Local file not readable: {local_source}", path=local_source
        ) from e


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    A single instance is built from configuration at startup and shared by
    every request, so implementations must be safe for concurrent use
    without external locking and must keep their configuration immutable.

    Every operation may block on I/O and accepts an optional Deadline;
    implementations check it at I/O boundaries and release local resources
    (file handles, connections) on every exit path.

    Deleting a missing object is an idempotent success for every backend.
    """

    name: str = "base"

    @abstractmethod
    def upload_local_file(
        self,
        local_source: str,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        """
        Copy bytes from a local file to remote_path, creating or overwriting it.

        Args:
            local_source: Local filesystem path to read
            remote_path: Destination key in the backend namespace
            deadline: Optional deadline / cancellation token

        Raises:
            NotFoundError: If local_source is missing or unreadable
            InvalidPathError: If remote_path violates naming rules
            BackendUnavailableError: If the remote write cannot complete
        """
        pass

    @abstractmethod
    def delete_single_file(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        """
        Remove an object. Succeeds when the object is already absent.

        Raises:
            InvalidPathError: If remote_path violates naming rules
            BackendUnavailableError: On transport failure
        """
        pass

    @abstractmethod
    def copy_file(
        self,
        src_path: str,
        dst_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        """
        Duplicate an object inside the backend without routing bytes
        through the caller's memory.

        Raises:
            NotFoundError: If src_path does not exist
            InvalidPathError: If either path violates naming rules
            BackendUnavailableError: On transport failure
        """
        pass

    @abstractmethod
    def get_upload_policy(
        self,
        remote_path: str,
        callback_url: str,
        callback_body: str,
        deadline: Optional[Deadline] = None,
    ) -> str:
        """
        Issue a signed, time-limited policy for a direct client upload.

        Args:
            remote_path: Key the client may upload to
            callback_url: Absolute URL the backend notifies after the upload
            callback_body: Opaque payload echoed verbatim to callback_url

        Returns:
            Opaque policy string

        Raises:
            InvalidArgumentError: If any input is malformed
            BackendUnavailableError: If issuance needs a round-trip that fails
        """
        pass

    @abstractmethod
    def read_file(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> bytes:
        """
        Return the full contents of an object.

        Raises:
            NotFoundError: If the object does not exist
        """
        pass

    @abstractmethod
    def exists(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """Return True if an object exists at remote_path."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
