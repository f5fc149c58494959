"""
Replay grants that were lost after their code had been consumed.

Each consumed-code entry written during redemption records who redeemed it,
when, the hashed hardware ID and the granted expiry. That is enough to rebuild
the user's token, so the consumed-code list doubles as the intent log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional

from redeemer.clients.document_store import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
)
from redeemer.services.catalog import DocumentCatalog
from redeemer.services.commit import CommitAborted, CommitSequence, PendingWrite
from redeemer.services.grants import apply_grant, find_user, holds_code
from redeemer.services.hwid import HardwareIdHasher
from redeemer.utils.documents import (
    EXPIRED_CODES_KEY,
    REVOKED_KEY,
    USERS_KEY,
    DocumentDecodeError,
    dump_collection,
    load_collection,
)
from redeemer.utils.timestamps import parse_timestamp, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    replayed: List[str] = field(default_factory=list)
    failed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


class ReconciliationService:
    def __init__(
        self,
        *,
        codes_store: DocumentStore,
        users_store: DocumentStore,
        catalog: DocumentCatalog,
        hasher: HardwareIdHasher,
        commit_sequence: CommitSequence | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._codes = codes_store
        self._users = users_store
        self._catalog = catalog
        self._hasher = hasher
        self._commits = commit_sequence or CommitSequence()
        self._clock = clock

    async def run(self) -> ReconcileReport:
        now = self._clock()
        try:
            consumed = load_collection(
                (await self._codes.read(self._catalog.expired_codes)).content,
                EXPIRED_CODES_KEY,
            )
        except DocumentNotFoundError:
            logger.info("No consumed codes recorded; nothing to reconcile.")
            return ReconcileReport()
        except (DocumentStoreError, DocumentDecodeError) as exc:
            logger.error("Could not read consumed codes: %s", exc)
            return ReconcileReport(failed=True)

        users_version: Optional[str] = None
        users_base: Any = None
        try:
            users_doc = await self._users.read(self._catalog.users)
        except DocumentNotFoundError:
            users: list = []
        except DocumentStoreError as exc:
            logger.error("Could not read users: %s", exc)
            return ReconcileReport(failed=True)
        else:
            users_version = users_doc.version
            users_base = users_doc.content
            try:
                users = load_collection(users_doc.content, USERS_KEY)
            except DocumentDecodeError as exc:
                logger.error("Users document has an unexpected layout: %s", exc)
                return ReconcileReport(failed=True)

        try:
            revoked = load_collection(
                (await self._users.read(self._catalog.revoked)).content, REVOKED_KEY
            )
        except DocumentNotFoundError:
            revoked = []
        except (DocumentStoreError, DocumentDecodeError) as exc:
            logger.error("Could not read revoked users: %s", exc)
            return ReconcileReport(failed=True)

        replayed: List[str] = []
        for entry in consumed:
            username = entry.get("used_by")
            code = entry.get("code")
            granted_expiry = entry.get("granted_expiry")
            if not username or not code or not granted_expiry or entry.get("moved_at"):
                continue
            expiry = parse_timestamp(granted_expiry)
            if expiry is None or expiry <= now:
                continue
            user = find_user(users, username)
            if user is not None and holds_code(user, code):
                continue
            revoked_user = find_user(
                [record for record in revoked if holds_code(record, code)], username
            )
            if revoked_user is not None:
                continue

            apply_grant(
                users,
                username=str(username),
                hwid_hash=entry.get("used_by_hwid"),
                code=str(code),
                redeemed_at=str(entry.get("used_at") or granted_expiry),
                granted_expiry=str(granted_expiry),
                hasher=self._hasher,
            )
            replayed.append(f"{username}:{code}")
            logger.warning("Replaying lost grant", extra={"username": username, "code": code})

        if not replayed:
            logger.info("All consumed codes have matching grants.")
            return ReconcileReport()

        try:
            await self._commits.run(
                [
                    PendingWrite(
                        label="users",
                        store=self._users,
                        location=self._catalog.users,
                        content=dump_collection(users, USERS_KEY, users_base),
                        expected_version=users_version,
                        message=f"Reconcile {len(replayed)} lost grants",
                    )
                ]
            )
        except CommitAborted as exc:
            logger.error("Could not write reconciled grants: %s", exc.cause)
            return ReconcileReport(failed=True)

        return ReconcileReport(replayed=replayed)


__all__ = ["ReconcileReport", "ReconciliationService"]
