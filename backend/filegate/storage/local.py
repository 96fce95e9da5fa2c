"""Local filesystem storage backend with path validation and atomic writes."""
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional

from filegate.storage.base import (
    StorageBackend,
    open_local_source,
    require_local_source,
    validate_remote_path,
)
from filegate.storage.deadline import Deadline
from filegate.storage.errors import (
    BackendUnavailableError,
    InvalidPathError,
    NotFoundError,
)
from filegate.storage.policy import PolicyIssuer

logger = logging.getLogger(__name__)


class LocalStorageBackend(StorageBackend):
    """
    Stores objects as files under a root directory.

    Writes go to a temp file in the target directory and are moved into
    place with os.replace, so readers see either the old or the new file.
    """

    name = "local"

    CHUNK_SIZE = 64 * 1024  # 64KB

    def __init__(self, storage_root: str, policy_issuer: PolicyIssuer):
        """
        Args:
            storage_root: Base directory for all objects (created if missing)
            policy_issuer: Issuer for direct-upload policies
        """
        self.storage_root = Path(storage_root).resolve()
        self.policy_issuer = policy_issuer
        try:
            self.storage_root.mkdir(parents=True, exist_ok=True, mode=0o750)
        except OSError as e:
            raise BackendUnavailableError(
                f"Cannot create storage root {self.storage_root}: {e}"
            ) from e

    def _get_full_path(self, remote_path: str, field: str = "remote path") -> Path:
        """Resolve a key under storage_root. Raises InvalidPathError on traversal."""
        validate_remote_path(remote_path, field)
        full_path = (self.storage_root / remote_path).resolve()
        try:
            full_path.relative_to(self.storage_root)
        except ValueError as e:
            raise InvalidPathError(
                f"{field} escapes the storage root", path=remote_path
            ) from e
        if full_path == self.storage_root:
            raise InvalidPathError(f"{field} names the storage root", path=remote_path)
        return full_path

    def _write_atomic(self, source: BinaryIO, target: Path, deadline: Deadline, operation: str):
        """Stream source into target via temp file + rename."""
        try:
            target.parent.mkdir(parents=True, exist_ok=True, mode=0o750)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=target.parent, prefix=".tmp_", suffix=target.suffix
            )
        except (FileExistsError, NotADirectoryError) as e:
            raise InvalidPathError(
                f"A parent of {target.name} is an existing file", path=str(target)
            ) from e
        except OSError as e:
            raise BackendUnavailableError(f"{operation} failed: {e}") from e

        try:
            with os.fdopen(temp_fd, "wb") as out:
                for chunk in iter(lambda: source.read(self.CHUNK_SIZE), b""):
                    deadline.check(operation)
                    out.write(chunk)
            deadline.check(operation)
            os.replace(temp_path, target)
        except IsADirectoryError as e:
            raise InvalidPathError(
                f"Target {target.name} is an existing directory", path=str(target)
            ) from e
        except OSError as e:
            raise BackendUnavailableError(f"{operation} failed: {e}") from e
        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)

    def upload_local_file(
        self,
        local_source: str,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        deadline = deadline or Deadline.never()
        require_local_source(local_source)
        target = self._get_full_path(remote_path)
        deadline.check("upload")

        with open_local_source(local_source) as source:
            self._write_atomic(source, target, deadline, "upload")

    def delete_single_file(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        target = self._get_full_path(remote_path)
        (deadline or Deadline.never()).check("delete")
        try:
            target.unlink()
        except (FileNotFoundError, NotADirectoryError):
            logger.debug(f"Delete of missing object {remote_path} treated as success")
        except IsADirectoryError as e:
            raise InvalidPathError(
                f"{remote_path} is a directory, not an object", path=remote_path
            ) from e
        except OSError as e:
            raise BackendUnavailableError(f"delete failed: {e}", path=remote_path) from e

    def copy_file(
        self,
        src_path: str,
        dst_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        deadline = deadline or Deadline.never()
        source_path = self._get_full_path(src_path, "source path")
        target = self._get_full_path(dst_path, "destination path")
        deadline.check("copy")

        # No native copy primitive on a plain filesystem; stream file to file
        try:
            source = open(source_path, "rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise NotFoundError(f"Source object not found: {src_path}", path=src_path) from e
        except OSError as e:
            raise BackendUnavailableError(f"copy failed: {e}", path=src_path) from e

        with source:
            self._write_atomic(source, target, deadline, "copy")

    def get_upload_policy(
        self,
        remote_path: str,
        callback_url: str,
        callback_body: str,
        deadline: Optional[Deadline] = None,
    ) -> str:
        self.policy_issuer.validate_request(remote_path, callback_url, callback_body)
        self._get_full_path(remote_path)
        (deadline or Deadline.never()).check("upload policy")
        return self.policy_issuer.issue(remote_path, callback_url, callback_body)

    def read_file(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> bytes:
        deadline = deadline or Deadline.never()
        target = self._get_full_path(remote_path)
        deadline.check("read")
        chunks = []
        try:
            with open(target, "rb") as f:
                for chunk in iter(lambda: f.read(self.CHUNK_SIZE), b""):
                    deadline.check("read")
                    chunks.append(chunk)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise NotFoundError(f"Object not found: {remote_path}", path=remote_path) from e
        except OSError as e:
            raise BackendUnavailableError(f"read failed: {e}", path=remote_path) from e
        return b"".join(chunks)

    def exists(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        target = self._get_full_path(remote_path)
        (deadline or Deadline.never()).check("exists")
        return target.is_file()
