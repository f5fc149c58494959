"""
Redemption of a license code into a user grant.

A redemption reads every document it needs up front, then commits in a fixed
order: the active code list first (critical, never retried), the consumed-code
mirror next (advisory), the users document last (critical). A crash or failure
after the first commit leaves a consumed code without a grant, which the
reconciliation pass can replay from the consumed-code entry. The reverse, a
grant whose code is still redeemable, cannot happen.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from redeemer.clients.document_store import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
)
from redeemer.schemas.records import CodeRecord, UserRecord
from redeemer.schemas.requests import RedeemRequest
from redeemer.services.catalog import DocumentCatalog
from redeemer.services.commit import CommitAborted, CommitSequence, PendingWrite, WritePolicy
from redeemer.services.grants import apply_grant
from redeemer.services.hwid import HardwareIdHasher
from redeemer.utils.documents import (
    ACTIVE_CODES_KEY,
    EXPIRED_CODES_KEY,
    USERS_KEY,
    DocumentDecodeError,
    dump_collection,
    load_collection,
    normalize_code,
)
from redeemer.utils.timestamps import add_days, date_only, format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)


class RedemptionStatus(str, enum.Enum):
    SUCCESS = "success"
    INVALID_INPUT = "invalid_input"
    UNSUPPORTED_ACTION = "unsupported_action"
    STORE_UNAVAILABLE = "store_unavailable"
    CODE_INVALID_OR_USED = "code_invalid_or_used"
    CODE_EXPIRED = "code_expired"
    CONFLICT = "conflict"
    PARTIAL_GRANT_FAILURE = "partial_grant_failure"


_OPERATIONAL_FAILURES = frozenset(
    {RedemptionStatus.STORE_UNAVAILABLE, RedemptionStatus.PARTIAL_GRANT_FAILURE}
)

_REPLIES = {
    RedemptionStatus.INVALID_INPUT: (
        "❌ Missing username, hwid or code. Put each on its own line, "
        "for example `username: alice`."
    ),
    RedemptionStatus.UNSUPPORTED_ACTION: "❌ Unsupported action.",
    RedemptionStatus.STORE_UNAVAILABLE: "❌ Error reading codes. Please try again later.",
    RedemptionStatus.CODE_INVALID_OR_USED: "❌ Invalid or already used code.",
    RedemptionStatus.CODE_EXPIRED: "❌ Code expired.",
    RedemptionStatus.CONFLICT: (
        "⚠️ Another request changed the code list while yours was processed. "
        "Please retry by opening a new request."
    ),
    RedemptionStatus.PARTIAL_GRANT_FAILURE: (
        "❌ Your code was accepted but access could not be recorded. "
        "An operator has been notified and will complete the grant."
    ),
}


@dataclass(frozen=True)
class RedemptionResult:
    status: RedemptionStatus
    username: Optional[str] = None
    code: Optional[str] = None
    granted_expiry: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is RedemptionStatus.SUCCESS

    @property
    def operational_failure(self) -> bool:
        return self.status in _OPERATIONAL_FAILURES

    def reply_text(self) -> str:
        if self.ok:
            return f"✅ Redeem OK for {self.username}. Expires: {date_only(self.granted_expiry)}"
        return _REPLIES[self.status]


class _ExpiredCode(Exception):
    pass


class RedemptionService:
    """Validate a code and grant the user access."""

    def __init__(
        self,
        *,
        codes_store: DocumentStore,
        users_store: DocumentStore,
        catalog: DocumentCatalog,
        hasher: HardwareIdHasher,
        default_duration_days: int = 30,
        commit_sequence: CommitSequence | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._codes = codes_store
        self._users = users_store
        self._catalog = catalog
        self._hasher = hasher
        self._default_duration_days = default_duration_days
        self._commits = commit_sequence or CommitSequence()
        self._clock = clock

    async def redeem(
        self,
        *,
        username: Optional[str],
        hwid: Optional[str],
        code: Optional[str],
    ) -> RedemptionResult:
        try:
            request = RedeemRequest(username=username, hwid=hwid, code=code)
        except ValidationError:
            return RedemptionResult(RedemptionStatus.INVALID_INPUT)

        now = self._clock()

        try:
            active_doc = await self._codes.read(self._catalog.active_codes)
            active = load_collection(active_doc.content, ACTIVE_CODES_KEY)
        except (DocumentStoreError, DocumentDecodeError) as exc:
            logger.error("Could not read active codes: %s", exc)
            return RedemptionResult(RedemptionStatus.STORE_UNAVAILABLE)

        index = self._find_unused(active, request.code)
        if index is None:
            logger.info("Rejected unknown or used code", extra={"username": request.username})
            return RedemptionResult(RedemptionStatus.CODE_INVALID_OR_USED)

        entry: CodeRecord = dict(active[index])  # type: ignore[assignment]
        code_value = str(entry.get("code") or request.code)
        try:
            granted_expiry = self._granted_expiry(entry, now)
        except _ExpiredCode:
            return RedemptionResult(RedemptionStatus.CODE_EXPIRED, code=code_value)
        if granted_expiry is None:
            logger.warning("Code %s has an unreadable expiry %r", code_value, entry.get("expiry"))
            return RedemptionResult(RedemptionStatus.CODE_INVALID_OR_USED)

        redeemed_at = format_timestamp(now)
        hwid_hash = self._hasher.hash(request.hwid)
        used_entry: CodeRecord = {
            **entry,
            "used": True,
            "used_by": request.username,
            "used_by_hwid": hwid_hash,
            "used_at": redeemed_at,
            "granted_expiry": granted_expiry,
        }
        remaining = active[:index] + active[index + 1 :]

        expired_records: Optional[List[CodeRecord]]
        expired_version: Optional[str] = None
        expired_base: Any = None
        try:
            expired_doc = await self._codes.read(self._catalog.expired_codes)
        except DocumentNotFoundError:
            expired_records = []
        except DocumentStoreError as exc:
            logger.warning("Skipping consumed-code mirror, read failed: %s", exc)
            expired_records = None
        else:
            expired_version = expired_doc.version
            expired_base = expired_doc.content
            try:
                expired_records = load_collection(expired_doc.content, EXPIRED_CODES_KEY)  # type: ignore[assignment]
            except DocumentDecodeError as exc:
                logger.warning("Skipping consumed-code mirror, bad layout: %s", exc)
                expired_records = None

        users_version: Optional[str] = None
        users_base: Any = None
        try:
            users_doc = await self._users.read(self._catalog.users)
        except DocumentNotFoundError:
            users: List[UserRecord] = []
        except DocumentStoreError as exc:
            logger.error("Could not read users: %s", exc)
            return RedemptionResult(RedemptionStatus.STORE_UNAVAILABLE)
        else:
            users_version = users_doc.version
            users_base = users_doc.content
            try:
                users = load_collection(users_doc.content, USERS_KEY)  # type: ignore[assignment]
            except DocumentDecodeError as exc:
                logger.error("Users document has an unexpected layout: %s", exc)
                return RedemptionResult(RedemptionStatus.STORE_UNAVAILABLE)

        apply_grant(
            users,
            username=request.username,
            hwid_hash=hwid_hash,
            code=code_value,
            redeemed_at=redeemed_at,
            granted_expiry=granted_expiry,
            hasher=self._hasher,
        )

        writes = [
            PendingWrite(
                label="active_codes",
                store=self._codes,
                location=self._catalog.active_codes,
                content=dump_collection(remaining, ACTIVE_CODES_KEY, active_doc.content),
                expected_version=active_doc.version,
                message=f"Mark {code_value} used",
            )
        ]
        if expired_records is not None:
            expired_records.append(used_entry)
            writes.append(
                PendingWrite(
                    label="expired_codes",
                    store=self._codes,
                    location=self._catalog.expired_codes,
                    content=dump_collection(expired_records, EXPIRED_CODES_KEY, expired_base),  # type: ignore[arg-type]
                    expected_version=expired_version,
                    message=f"Add used {code_value}",
                    policy=WritePolicy.ADVISORY,
                )
            )
        writes.append(
            PendingWrite(
                label="users",
                store=self._users,
                location=self._catalog.users,
                content=dump_collection(users, USERS_KEY, users_base),  # type: ignore[arg-type]
                expected_version=users_version,
                message=f"Update user {request.username}",
            )
        )

        try:
            await self._commits.run(writes)
        except CommitAborted as exc:
            if exc.write.label == "active_codes":
                if exc.is_conflict:
                    return await self._classify_conflict(request.code)
                # A write that did not complete may still have landed; an operator
                # must check the active code list before the user retries.
                logger.error(
                    "Consuming code failed; check whether it was removed",
                    extra={
                        "username": request.username,
                        "code": code_value,
                        "granted_expiry": granted_expiry,
                        "error": str(exc.cause),
                    },
                )
                return RedemptionResult(
                    RedemptionStatus.STORE_UNAVAILABLE,
                    username=request.username,
                    code=code_value,
                )
            logger.error(
                "Code consumed but grant not recorded; manual reconciliation required",
                extra={
                    "username": request.username,
                    "code": code_value,
                    "granted_expiry": granted_expiry,
                    "error": str(exc.cause),
                },
            )
            return RedemptionResult(
                RedemptionStatus.PARTIAL_GRANT_FAILURE,
                username=request.username,
                code=code_value,
                granted_expiry=granted_expiry,
            )

        logger.info(
            "Redeemed code",
            extra={"username": request.username, "code": code_value, "granted_expiry": granted_expiry},
        )
        return RedemptionResult(
            RedemptionStatus.SUCCESS,
            username=request.username,
            code=code_value,
            granted_expiry=granted_expiry,
        )

    @staticmethod
    def _find_unused(active: List[dict], code: str) -> Optional[int]:
        wanted = normalize_code(code)
        for index, entry in enumerate(active):
            if normalize_code(entry.get("code")) == wanted and not entry.get("used"):
                return index
        return None

    def _granted_expiry(self, entry: CodeRecord, now: datetime) -> Optional[str]:
        """Absolute expiry verbatim if set, otherwise now plus the duration.

        Raises ``_ExpiredCode`` when the absolute expiry has passed and returns
        ``None`` when it cannot be parsed.
        """
        absolute = entry.get("expiry")
        if absolute:
            parsed = parse_timestamp(absolute)
            if parsed is None:
                return None
            if parsed < now:
                raise _ExpiredCode()
            return str(absolute)
        return format_timestamp(add_days(now, self._duration_days(entry)))

    def _duration_days(self, entry: CodeRecord) -> int:
        try:
            days = int(entry.get("duration_days"))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return self._default_duration_days
        return days if days > 0 else self._default_duration_days

    async def _classify_conflict(self, code: str) -> RedemptionResult:
        """Tell a lost race on this very code apart from an unrelated edit."""
        try:
            active_doc = await self._codes.read(self._catalog.active_codes)
            active = load_collection(active_doc.content, ACTIVE_CODES_KEY)
        except (DocumentStoreError, DocumentDecodeError) as exc:
            logger.warning("Re-read after conflict failed: %s", exc)
            return RedemptionResult(RedemptionStatus.CONFLICT)
        if self._find_unused(active, code) is None:
            logger.info("Lost redemption race for code", extra={"code": code})
            return RedemptionResult(RedemptionStatus.CODE_INVALID_OR_USED)
        return RedemptionResult(RedemptionStatus.CONFLICT)


__all__ = ["RedemptionResult", "RedemptionService", "RedemptionStatus"]
