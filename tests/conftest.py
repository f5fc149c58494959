"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

import pytest

from redeemer.clients import DocumentLocation, LocalDocumentStore
from redeemer.services import CommitSequence, DocumentCatalog, HardwareIdHasher
from redeemer.utils.http import RetryConfig

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path) -> LocalDocumentStore:
    return LocalDocumentStore(str(tmp_path / "store"))


@pytest.fixture
def catalog() -> DocumentCatalog:
    return DocumentCatalog(
        active_codes=DocumentLocation("acme", "codes", "active_codes.json"),
        expired_codes=DocumentLocation("acme", "codes", "expired_codes.json"),
        users=DocumentLocation("acme", "users", "users.json"),
        revoked=DocumentLocation("acme", "users", "revoked.json"),
    )


@pytest.fixture
def hasher() -> HardwareIdHasher:
    return HardwareIdHasher(secret="test-hwid-secret")


@pytest.fixture
def commits() -> CommitSequence:
    """Commit sequence that retries conflicts without sleeping."""
    return CommitSequence(conflict_retry=RetryConfig(attempts=3, backoff_seconds=0))


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"
