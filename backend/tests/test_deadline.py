"""
Tests for the deadline / cancellation token.
"""
import pytest

from filegate.storage import deadline as deadline_module
from filegate.storage.deadline import Deadline
from filegate.storage.errors import (
    BackendUnavailableError,
    DeadlineExceededError,
    OperationCancelledError,
)


class TestDeadline:

    def test_never_does_not_expire(self):
        deadline = Deadline.never()

        assert deadline.remaining() is None
        assert not deadline.expired
        deadline.check("upload")

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValueError):
            Deadline(0)
        with pytest.raises(ValueError):
            Deadline(-1.5)

    def test_expiry_raises_deadline_exceeded(self, monkeypatch):
        """Once the monotonic clock passes the limit, check() raises."""
        now = [100.0]
        monkeypatch.setattr(deadline_module.time, "monotonic", lambda: now[0])
        deadline = Deadline(5.0)

        assert deadline.remaining() == 5.0
        deadline.check("copy")

        now[0] = 105.0
        assert deadline.expired
        assert deadline.remaining() == 0.0
        with pytest.raises(DeadlineExceededError, match="copy"):
            deadline.check("copy")

    def test_cancel_raises_operation_cancelled(self):
        deadline = Deadline(60)
        deadline.cancel()

        assert deadline.cancelled
        with pytest.raises(OperationCancelledError):
            deadline.check("delete")

    def test_cancellation_takes_precedence_over_expiry(self, monkeypatch):
        now = [0.0]
        monkeypatch.setattr(deadline_module.time, "monotonic", lambda: now[0])
        deadline = Deadline(1.0)
        now[0] = 10.0
        deadline.cancel()

        with pytest.raises(OperationCancelledError):
            deadline.check()

    def test_errors_are_backend_unavailable(self):
        """Deadline failures surface as BackendUnavailable to callers."""
        assert issubclass(DeadlineExceededError, BackendUnavailableError)
        assert issubclass(OperationCancelledError, BackendUnavailableError)
