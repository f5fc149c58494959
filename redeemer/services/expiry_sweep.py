"""
Periodic sweep that moves expired users to the revoked list.

The users document is rewritten first, without any rebase: if it changed
since the sweep read it, nothing has been written yet and the whole sweep is
simply run again. The revoked list and the expired-code list are append-only,
so conflicts there are resolved by merging onto the live document.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from redeemer.clients.document_store import (
    DocumentLocation,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
)
from redeemer.schemas.records import CodeRecord, UserRecord
from redeemer.services.catalog import DocumentCatalog
from redeemer.services.commit import CommitAborted, CommitSequence, PendingWrite
from redeemer.services.grants import referenced_codes, user_expiry
from redeemer.utils.documents import (
    EXPIRED_CODES_KEY,
    REVOKED_KEY,
    USERS_KEY,
    DocumentDecodeError,
    dump_collection,
    load_collection,
    normalize_code,
    normalize_username,
)
from redeemer.utils.http import RetryConfig
from redeemer.utils.timestamps import format_timestamp, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    moved: int = 0
    usernames: List[str] = field(default_factory=list)
    codes_added: int = 0
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class _UsersChanged(Exception):
    pass


def partition_users(
    users: List[UserRecord], now: datetime
) -> Tuple[List[UserRecord], List[UserRecord]]:
    """Split users into (still active, expired). No expiry means still active."""
    still_active: List[UserRecord] = []
    expired: List[UserRecord] = []
    for record in users:
        expiry = user_expiry(record)
        if expiry is not None and expiry <= now:
            expired.append(record)
        else:
            still_active.append(record)
    return still_active, expired


def merge_revoked(existing: List[UserRecord], additions: List[UserRecord]) -> List[UserRecord]:
    def key(record: UserRecord) -> tuple:
        return normalize_username(record.get("username")), record.get("revoked_at")

    seen = {key(record) for record in existing}
    merged = list(existing)
    for record in additions:
        if key(record) not in seen:
            seen.add(key(record))
            merged.append(record)
    return merged


def merge_expired_codes(
    existing: List[CodeRecord], expired_users: List[UserRecord], moved_at: str
) -> List[CodeRecord]:
    seen = {normalize_code(entry.get("code")) for entry in existing}
    merged = list(existing)
    for record in expired_users:
        for code in referenced_codes(record):
            key = normalize_code(code)
            if key in seen:
                continue
            seen.add(key)
            merged.append(
                {
                    "code": code,
                    "used": True,
                    "used_by": str(record.get("username") or ""),
                    "moved_at": moved_at,
                }
            )
    return merged


class ExpirySweepService:
    """Move users whose expiry has passed out of the users document."""

    def __init__(
        self,
        *,
        codes_store: DocumentStore,
        users_store: DocumentStore,
        catalog: DocumentCatalog,
        commit_sequence: CommitSequence | None = None,
        restart_retry: RetryConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._codes = codes_store
        self._users = users_store
        self._catalog = catalog
        self._commits = commit_sequence or CommitSequence()
        self._restart = restart_retry or RetryConfig(attempts=3, backoff_seconds=0.5)
        self._clock = clock

    async def run(self) -> SweepReport:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._sweep_once()
            except _UsersChanged:
                if attempt >= self._restart.attempts:
                    logger.error("Users document kept changing; giving up after %d attempts", attempt)
                    return SweepReport(failures=["users"])
                logger.info("Users document changed during sweep, restarting")
                await asyncio.sleep(self._restart.delay_for(attempt))

    async def _read_collection(
        self, store: DocumentStore, location: DocumentLocation, key: str
    ) -> Tuple[List[dict], Optional[str], Any]:
        try:
            document = await store.read(location)
        except DocumentNotFoundError:
            return [], None, None
        return load_collection(document.content, key), document.version, document.content

    async def _sweep_once(self) -> SweepReport:
        now = self._clock()
        now_iso = format_timestamp(now)

        try:
            users, users_version, users_base = await self._read_collection(
                self._users, self._catalog.users, USERS_KEY
            )
        except (DocumentStoreError, DocumentDecodeError) as exc:
            logger.error("Could not read users: %s", exc)
            return SweepReport(failures=["users"])

        still_active, expired = partition_users(users, now)  # type: ignore[arg-type]
        if not expired:
            logger.info("No expired users found.")
            return SweepReport()

        revoked_additions: List[UserRecord] = [
            {**record, "revoked": True, "revoked_at": now_iso} for record in expired
        ]

        try:
            revoked, revoked_version, revoked_base = await self._read_collection(
                self._users, self._catalog.revoked, REVOKED_KEY
            )
        except (DocumentStoreError, DocumentDecodeError) as exc:
            logger.error("Could not read revoked list: %s", exc)
            return SweepReport(failures=["revoked"])

        try:
            expired_codes, expired_codes_version, expired_codes_base = await self._read_collection(
                self._codes, self._catalog.expired_codes, EXPIRED_CODES_KEY
            )
        except (DocumentStoreError, DocumentDecodeError) as exc:
            logger.error("Could not read expired-code list: %s", exc)
            return SweepReport(failures=["expired_codes"])

        merged_codes = merge_expired_codes(expired_codes, expired, now_iso)  # type: ignore[arg-type]
        codes_added = len(merged_codes) - len(expired_codes)
        count = len(expired)

        writes = [
            PendingWrite(
                label="users",
                store=self._users,
                location=self._catalog.users,
                content=dump_collection(still_active, USERS_KEY, users_base),  # type: ignore[arg-type]
                expected_version=users_version,
                message=f"Remove expired users ({count})",
            ),
            PendingWrite(
                label="revoked",
                store=self._users,
                location=self._catalog.revoked,
                content=dump_collection(
                    merge_revoked(revoked, revoked_additions), REVOKED_KEY, revoked_base  # type: ignore[arg-type]
                ),
                expected_version=revoked_version,
                message=f"Add {count} revoked users",
                rebase=lambda live: dump_collection(
                    merge_revoked(load_collection(live, REVOKED_KEY), revoked_additions),  # type: ignore[arg-type]
                    REVOKED_KEY,
                    live,
                ),
            ),
            PendingWrite(
                label="expired_codes",
                store=self._codes,
                location=self._catalog.expired_codes,
                content=dump_collection(merged_codes, EXPIRED_CODES_KEY, expired_codes_base),  # type: ignore[arg-type]
                expected_version=expired_codes_version,
                message="Add expired codes from revoke run",
                rebase=lambda live: dump_collection(
                    merge_expired_codes(load_collection(live, EXPIRED_CODES_KEY), expired, now_iso),  # type: ignore[arg-type]
                    EXPIRED_CODES_KEY,
                    live,
                ),
            ),
        ]

        usernames = [str(record.get("username") or "") for record in expired]
        try:
            await self._commits.run(writes)
        except CommitAborted as exc:
            if exc.write.label == "users" and exc.is_conflict:
                raise _UsersChanged() from exc
            if "users" in exc.completed:
                # The users were already removed; keep them recoverable from the log.
                logger.error(
                    "Sweep interrupted after removing users; revoked records follow: %s",
                    json.dumps(revoked_additions, ensure_ascii=False),
                )
            logger.error("Sweep failed at %s: %s", exc.write.label, exc.cause)
            return SweepReport(
                moved=count if "users" in exc.completed else 0,
                usernames=usernames if "users" in exc.completed else [],
                failures=[exc.write.label],
            )

        logger.info("Moved %d users to revoked and updated expired codes.", count)
        return SweepReport(moved=count, usernames=usernames, codes_added=codes_added)


__all__ = [
    "ExpirySweepService",
    "SweepReport",
    "merge_expired_codes",
    "merge_revoked",
    "partition_users",
]
