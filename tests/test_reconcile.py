try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from redeemer.clients import DocumentNotFoundError, DocumentStoreError
from redeemer.services import ReconciliationService, RedemptionService, RedemptionStatus


def _consumed(code: str, username: str, granted_expiry: str, **extra) -> dict:
    entry = {
        "code": code,
        "used": True,
        "used_by": username,
        "used_by_hwid": f"hash-{username}",
        "used_at": "2025-02-20T00:00:00+00:00",
        "granted_expiry": granted_expiry,
    }
    entry.update(extra)
    return entry


async def _seed(store, location, content) -> None:
    await store.write(location, content, expected_version=None, message="seed")


def _service(store, catalog, hasher, commits, clock) -> ReconciliationService:
    return ReconciliationService(
        codes_store=store,
        users_store=store,
        catalog=catalog,
        hasher=hasher,
        commit_sequence=commits,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_replays_grant_missing_from_users(store, catalog, hasher, commits, clock) -> None:
    await _seed(
        store,
        catalog.expired_codes,
        {"expired": [_consumed("ABC-123", "alice", "2025-03-22T00:00:00+00:00")]},
    )

    report = await _service(store, catalog, hasher, commits, clock).run()

    assert report.ok
    assert report.replayed == ["alice:ABC-123"]
    (user,) = (await store.read(catalog.users)).content["users"]
    assert user["username"] == "alice"
    assert user["hwid_hash"] == "hash-alice"
    assert user["expiry"] == "2025-03-22T00:00:00+00:00"
    assert user["tokens"] == [
        {
            "code": "ABC-123",
            "redeemed_at": "2025-02-20T00:00:00+00:00",
            "granted_expiry": "2025-03-22T00:00:00+00:00",
        }
    ]


@pytest.mark.asyncio
async def test_skips_entries_that_need_no_replay(store, catalog, hasher, commits, clock) -> None:
    await _seed(
        store,
        catalog.expired_codes,
        {
            "expired": [
                _consumed("HELD-1", "bob", "2025-04-01T00:00:00Z"),
                _consumed("OLD-1", "carol", "2025-02-01T00:00:00Z"),
                _consumed("SWEPT-1", "dave", "2025-04-01T00:00:00Z", moved_at="2025-02-28T00:00:00Z"),
                _consumed("REV-1", "erin", "2025-04-01T00:00:00Z"),
                {"code": "LEGACY-1", "used": True},
            ]
        },
    )
    await _seed(store, catalog.users, {"users": [{"username": "Bob", "code": "held-1"}]})
    await _seed(store, catalog.revoked, {"revoked": [{"username": "erin", "tokens": [{"code": "REV-1"}]}]})
    users_version = (await store.read(catalog.users)).version

    report = await _service(store, catalog, hasher, commits, clock).run()

    assert report.ok
    assert report.replayed == []
    assert (await store.read(catalog.users)).version == users_version


@pytest.mark.asyncio
async def test_nothing_to_do_without_consumed_codes(store, catalog, hasher, commits, clock) -> None:
    report = await _service(store, catalog, hasher, commits, clock).run()

    assert report.ok
    with pytest.raises(DocumentNotFoundError):
        await store.read(catalog.users)


class UsersWriteFails:
    def __init__(self, inner, location) -> None:
        self._inner = inner
        self._location = location
        self.fail = True

    async def read(self, location):
        return await self._inner.read(location)

    async def write(self, location, content, *, expected_version, message):
        if self.fail and location == self._location:
            raise DocumentStoreError("permission denied")
        return await self._inner.write(
            location, content, expected_version=expected_version, message=message
        )


@pytest.mark.asyncio
async def test_partial_redemption_is_repaired_by_reconcile(store, catalog, hasher, commits, clock) -> None:
    await _seed(store, catalog.active_codes, {"codes": [{"code": "ABC-123", "duration_days": 30}]})
    users_store = UsersWriteFails(store, catalog.users)
    redemption = RedemptionService(
        codes_store=store,
        users_store=users_store,
        catalog=catalog,
        hasher=hasher,
        commit_sequence=commits,
        clock=clock,
    )

    result = await redemption.redeem(username="alice", hwid="HW1", code="ABC-123")
    assert result.status is RedemptionStatus.PARTIAL_GRANT_FAILURE

    report = await _service(store, catalog, hasher, commits, clock).run()

    assert report.replayed == ["alice:ABC-123"]
    (user,) = (await store.read(catalog.users)).content["users"]
    assert user["hwid_hash"] == hasher.hash("HW1")
    assert user["expiry"] == result.granted_expiry

    second = await _service(store, catalog, hasher, commits, clock).run()
    assert second.replayed == []
