"""
Deadline / cancellation token passed to every backend operation.

Backends run on worker threads, so the token is checked cooperatively at
I/O boundaries (between chunks, inside transfer progress callbacks).
"""
import threading
import time
from typing import Optional

from filegate.storage.errors import DeadlineExceededError, OperationCancelledError


class Deadline:
    """Expiry time plus a thread-safe cancel flag."""

    def __init__(self, timeout: Optional[float] = None):
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self._expires_at = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when there is no time limit."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def check(self, operation: str = "storage operation"):
        """
        Raise if the operation must stop.

        Raises:
            OperationCancelledError: cancel() was called
            DeadlineExceededError: the time limit has passed
        """
        if self.cancelled:
            raise OperationCancelledError(f"{operation} cancelled")
        if self.expired:
            raise DeadlineExceededError(
                f"{operation} exceeded its deadline of {self.timeout}s"
            )

    def __repr__(self) -> str:
        return f"Deadline(timeout={self.timeout!r}, cancelled={self.cancelled})"
