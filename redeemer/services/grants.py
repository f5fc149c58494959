"""
Helpers for reading and updating user records.

Used by redemption, the expiry sweep and grant reconciliation so all three
agree on how users are matched and which fields carry expiry and codes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from redeemer.schemas.records import TokenGrant, UserRecord
from redeemer.services.hwid import HardwareIdHasher
from redeemer.utils.documents import normalize_code, normalize_username
from redeemer.utils.timestamps import parse_timestamp

_LEGACY_EXPIRY_FIELDS = ("expiry", "expiryUtc", "expiry_utc")


def find_user(users: Iterable[UserRecord], username: str) -> Optional[UserRecord]:
    wanted = normalize_username(username)
    for record in users:
        if normalize_username(record.get("username")) == wanted:
            return record
    return None


def user_expiry(record: UserRecord) -> Optional[datetime]:
    for field in _LEGACY_EXPIRY_FIELDS:
        value = record.get(field)  # type: ignore[misc]
        if value:
            return parse_timestamp(value)
    return None


def referenced_codes(record: UserRecord) -> List[str]:
    """Codes a user holds, from the token history and the legacy ``code`` field."""
    seen: dict[str, str] = {}
    legacy = record.get("code")  # type: ignore[misc]
    candidates = [legacy] if legacy else []
    candidates.extend(token.get("code") for token in record.get("tokens") or [])
    for code in candidates:
        if code and normalize_code(code) not in seen:
            seen[normalize_code(code)] = str(code)
    return list(seen.values())


def holds_code(record: UserRecord, code: str) -> bool:
    wanted = normalize_code(code)
    return any(normalize_code(held) == wanted for held in referenced_codes(record))


def migrate_legacy_hwid(record: UserRecord, hasher: HardwareIdHasher) -> None:
    """Replace a plaintext ``hwid`` with its hash."""
    legacy = record.pop("hwid", None)  # type: ignore[misc]
    if legacy and not record.get("hwid_hash"):
        record["hwid_hash"] = hasher.hash(str(legacy))


def apply_grant(
    users: List[UserRecord],
    *,
    username: str,
    hwid_hash: Optional[str],
    code: str,
    redeemed_at: str,
    granted_expiry: str,
    hasher: HardwareIdHasher,
) -> UserRecord:
    """Record a redeemed code against a user, creating the user if needed.

    An existing hardware hash is never replaced. The user's ``expiry`` becomes
    the later of the current one and the new grant.
    """
    record = find_user(users, username)
    if record is None:
        record = {
            "username": username,
            "hwid_hash": hwid_hash,
            "tokens": [],
            "activated_at": redeemed_at,
            "revoked": False,
        }
        users.append(record)
    else:
        migrate_legacy_hwid(record, hasher)
        if not record.get("hwid_hash"):
            record["hwid_hash"] = hwid_hash

    grant: TokenGrant = {
        "code": code,
        "redeemed_at": redeemed_at,
        "granted_expiry": granted_expiry,
    }
    record.setdefault("tokens", []).append(grant)

    current = user_expiry(record)
    new_expiry = parse_timestamp(granted_expiry)
    if current is None or (new_expiry is not None and new_expiry > current):
        record["expiry"] = granted_expiry
    return record


__all__ = [
    "apply_grant",
    "find_user",
    "holds_code",
    "migrate_legacy_hwid",
    "referenced_codes",
    "user_expiry",
]
