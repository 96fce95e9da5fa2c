"""
In-memory storage backend.

Used by tests and local experiments. Objects live in a dict guarded by a
lock; every write replaces a whole value, so readers never see a partial
object. accept_direct_upload() plays the provider side of a policy upload.
"""
import logging
import threading
from typing import Dict, List, Optional

from filegate.storage.base import (
    StorageBackend,
    open_local_source,
    require_local_source,
    validate_remote_path,
)
from filegate.storage.deadline import Deadline
from filegate.storage.errors import InvalidArgumentError, NotFoundError
from filegate.storage.policy import CallbackInstruction, PolicyIssuer

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class InMemoryStorageBackend(StorageBackend):
    """Dict-backed backend with the same contract as the remote adapters."""

    name = "memory"

    def __init__(self, policy_issuer: PolicyIssuer):
        self.policy_issuer = policy_issuer
        self._objects: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self.callbacks: List[CallbackInstruction] = []

    def upload_local_file(
        self,
        local_source: str,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        deadline = deadline or Deadline.never()
        require_local_source(local_source)
        validate_remote_path(remote_path)
        deadline.check("upload")

        chunks = []
        with open_local_source(local_source) as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                deadline.check("upload")
                chunks.append(chunk)

        data = b"".join(chunks)
        with self._lock:
            self._objects[remote_path] = data

    def delete_single_file(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        validate_remote_path(remote_path)
        (deadline or Deadline.never()).check("delete")
        with self._lock:
            removed = self._objects.pop(remote_path, None)
        if removed is None:
            logger.debug(f"Delete of missing object {remote_path} treated as success")

    def copy_file(
        self,
        src_path: str,
        dst_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        validate_remote_path(src_path, "source path")
        validate_remote_path(dst_path, "destination path")
        (deadline or Deadline.never()).check("copy")
        # bytes are immutable, so sharing the value is a server-side copy
        with self._lock:
            if src_path not in self._objects:
                raise NotFoundError(f"Source object not found: {src_path}", path=src_path)
            self._objects[dst_path] = self._objects[src_path]

    def get_upload_policy(
        self,
        remote_path: str,
        callback_url: str,
        callback_body: str,
        deadline: Optional[Deadline] = None,
    ) -> str:
        self.policy_issuer.validate_request(remote_path, callback_url, callback_body)
        validate_remote_path(remote_path)
        (deadline or Deadline.never()).check("upload policy")
        return self.policy_issuer.issue(remote_path, callback_url, callback_body)

    def read_file(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> bytes:
        validate_remote_path(remote_path)
        (deadline or Deadline.never()).check("read")
        with self._lock:
            try:
                return self._objects[remote_path]
            except KeyError:
                raise NotFoundError(f"Object not found: {remote_path}", path=remote_path)

    def exists(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        validate_remote_path(remote_path)
        (deadline or Deadline.never()).check("exists")
        with self._lock:
            return remote_path in self._objects

    def accept_direct_upload(self, policy: str, data: bytes) -> CallbackInstruction:
        """
        Accept a client upload authorized by a policy, then record the callback.

        Args:
            policy: Policy string from get_upload_policy()
            data: Uploaded bytes

        Returns:
            The callback instruction the provider would fire

        Raises:
            InvalidPolicyError: Bad signature or malformed policy
            PolicyExpiredError: Policy past its expiration
            InvalidArgumentError: Upload violates a policy condition
        """
        document = self.policy_issuer.decode(policy)

        length_range = document.conditions.get("content_length_range")
        if length_range is not None:
            low, high = length_range
            if not low <= len(data) <= high:
                raise InvalidArgumentError(
                    f"Upload size {len(data)} outside allowed range {low}-{high}",
                    path=document.key,
                )

        with self._lock:
            self._objects[document.key] = bytes(data)
            self.callbacks.append(document.callback)
        return document.callback

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._objects)
