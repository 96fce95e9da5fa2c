"""
Test configuration and fixtures.
Uses the in-memory storage backend; no external services required.
"""
import os

# Set test environment before any imports
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["POLICY_SECRET"] = "test-policy-secret"
os.environ["ENVIRONMENT"] = "test"

import pytest
from typing import AsyncGenerator
from datetime import datetime, timezone

from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from filegate.storage.local import LocalStorageBackend
from filegate.storage.memory import InMemoryStorageBackend
from filegate.storage.policy import PolicyIssuer


TEST_SECRET = "test-policy-secret"


class FrozenClock:
    """Clock returning a settable fixed time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def frozen_clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy_issuer() -> PolicyIssuer:
    """Issuer with the test secret and a five minute TTL."""
    return PolicyIssuer(secret=TEST_SECRET, ttl_seconds=300)


@pytest.fixture
def memory_backend(policy_issuer: PolicyIssuer) -> InMemoryStorageBackend:
    return InMemoryStorageBackend(policy_issuer=policy_issuer)


@pytest.fixture
def local_backend(tmp_path, policy_issuer: PolicyIssuer) -> LocalStorageBackend:
    return LocalStorageBackend(storage_root=str(tmp_path / "storage"), policy_issuer=policy_issuer)


@pytest.fixture(params=["memory", "local"])
def backend(request, memory_backend, local_backend):
    """Runs a test once per in-process backend."""
    if request.param == "memory":
        return memory_backend
    return local_backend


@pytest.fixture
def local_file(tmp_path):
    """Factory writing a local source file and returning its path."""
    def _make(content: bytes = b"hello world", name: str = "source.bin") -> str:
        path = tmp_path / "sources" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return str(path)
    return _make


def get_test_app(backend: InMemoryStorageBackend) -> FastAPI:
    """Create a test FastAPI app with the storage backend overridden."""
    from filegate.main import app
    from filegate.api.dependencies import get_storage_backend

    def override_get_storage_backend():
        return backend

    app.dependency_overrides[get_storage_backend] = override_get_storage_backend
    app.state.storage_backend = backend
    app.state.storage_error = None

    return app


@pytest.fixture
async def client(memory_backend: InMemoryStorageBackend) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = get_test_app(memory_backend)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()
    app.state.storage_backend = None


@pytest.fixture
async def client_no_backend() -> AsyncGenerator[AsyncClient, None]:
    """Client for an app whose backend failed to load from configuration."""
    from filegate.main import app

    app.dependency_overrides.clear()
    app.state.storage_backend = None
    app.state.storage_error = "S3 bucket not configured. Set S3_BUCKET environment variable."

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.storage_error = None
