"""
Shapes of the records kept in the JSON documents.

Records travel as plain dicts so fields this service does not know about
survive a read-modify-write untouched.
"""

from __future__ import annotations

from typing import List, Optional, TypedDict


class CodeRecord(TypedDict, total=False):
    """Entry in active_codes.json, and once consumed, in expired_codes.json."""

    code: str
    used: bool
    expiry: Optional[str]
    duration_days: int
    used_by: str
    used_by_hwid: Optional[str]
    used_at: str
    granted_expiry: str
    moved_at: str


class TokenGrant(TypedDict):
    code: str
    redeemed_at: str
    granted_expiry: str


class UserRecord(TypedDict, total=False):
    username: str
    hwid_hash: Optional[str]
    tokens: List[TokenGrant]
    activated_at: str
    expiry: str
    revoked: bool
    revoked_at: str


__all__ = ["CodeRecord", "TokenGrant", "UserRecord"]
