try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

from redeemer.services import HardwareIdHasher
from redeemer.services.grants import apply_grant, holds_code, referenced_codes, user_expiry
from redeemer.utils.timestamps import date_only, parse_timestamp


def test_parse_timestamp_accepts_store_formats() -> None:
    midnight = datetime(2025, 3, 1, tzinfo=timezone.utc)

    assert parse_timestamp("2025-03-01") == midnight
    assert parse_timestamp("2025-03-01T00:00:00Z") == midnight
    assert parse_timestamp("2025-03-01T01:00:00+01:00") == midnight
    assert parse_timestamp("2025-03-01T00:00:00") == midnight
    assert parse_timestamp("next tuesday") is None
    assert parse_timestamp("") is None


def test_date_only_renders_utc_date() -> None:
    assert date_only("2025-03-31T23:30:00-02:00") == "2025-04-01"
    assert date_only("not-a-dateTjunk") == "not-a-date"


def test_hasher_is_keyed_and_stable() -> None:
    keyed = HardwareIdHasher(secret="k1")

    assert keyed.hash("HW1") == keyed.hash("  HW1 ")
    assert keyed.hash("HW1") != HardwareIdHasher(secret="k2").hash("HW1")
    assert keyed.hash("HW1") != HardwareIdHasher().hash("HW1")
    assert "HW1" not in keyed.hash("HW1")


def test_user_expiry_reads_legacy_fields() -> None:
    assert user_expiry({"expiry_utc": "2025-05-01"}) == datetime(2025, 5, 1, tzinfo=timezone.utc)
    assert user_expiry({"username": "x"}) is None


def test_referenced_codes_merges_legacy_and_tokens() -> None:
    record = {"code": "aaa-1", "tokens": [{"code": "AAA-1"}, {"code": "BBB-2"}, {}]}

    assert referenced_codes(record) == ["aaa-1", "BBB-2"]
    assert holds_code(record, "bbb-2")
    assert not holds_code(record, "CCC-3")


def test_apply_grant_extends_expiry_only_forward() -> None:
    hasher = HardwareIdHasher(secret="k")
    users = [{"username": "alice", "hwid_hash": "h", "tokens": [], "expiry": "2025-04-01T00:00:00+00:00"}]

    apply_grant(
        users,
        username="ALICE",
        hwid_hash="other",
        code="LATER-1",
        redeemed_at="2025-03-01T00:00:00+00:00",
        granted_expiry="2025-06-01T00:00:00+00:00",
        hasher=hasher,
    )
    apply_grant(
        users,
        username="alice",
        hwid_hash="other",
        code="SHORT-1",
        redeemed_at="2025-03-02T00:00:00+00:00",
        granted_expiry="2025-03-10T00:00:00+00:00",
        hasher=hasher,
    )

    (user,) = users
    assert user["hwid_hash"] == "h"
    assert user["expiry"] == "2025-06-01T00:00:00+00:00"
    assert [token["code"] for token in user["tokens"]] == ["LATER-1", "SHORT-1"]
