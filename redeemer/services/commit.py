"""
Ordered execution of conditional document writes.

Each write declares whether it is critical (failure stops the sequence) or
advisory (failure is logged and the sequence moves on). A write may also
carry a ``rebase`` callback; on a version conflict the live document is
re-read, the content recomputed from it, and the write retried a bounded
number of times.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from redeemer.clients.document_store import (
    DocumentConflictError,
    DocumentLocation,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
)
from redeemer.utils.http import RetryConfig

logger = logging.getLogger(__name__)


class WritePolicy(str, enum.Enum):
    CRITICAL = "critical"
    ADVISORY = "advisory"


@dataclass
class PendingWrite:
    label: str
    store: DocumentStore
    location: DocumentLocation
    content: Any
    expected_version: Optional[str]
    message: str
    policy: WritePolicy = WritePolicy.CRITICAL
    rebase: Optional[Callable[[Any], Any]] = None


@dataclass
class CommitReport:
    completed: List[str] = field(default_factory=list)
    advisory_failures: List[str] = field(default_factory=list)


class CommitAborted(Exception):
    """A critical write failed; later writes in the sequence were not attempted."""

    def __init__(self, write: PendingWrite, cause: DocumentStoreError, completed: List[str]) -> None:
        super().__init__(f"{write.label} write to {write.location} failed: {cause}")
        self.write = write
        self.cause = cause
        self.completed = list(completed)

    @property
    def is_conflict(self) -> bool:
        return isinstance(self.cause, DocumentConflictError)


class CommitSequence:
    """Run writes in order according to their policy."""

    def __init__(self, *, conflict_retry: RetryConfig | None = None) -> None:
        self._conflict_retry = conflict_retry or RetryConfig(attempts=3, backoff_seconds=0.5)

    async def run(self, writes: List[PendingWrite]) -> CommitReport:
        report = CommitReport()
        for write in writes:
            try:
                await self._commit(write)
            except DocumentStoreError as exc:
                if write.policy is WritePolicy.ADVISORY:
                    logger.warning(
                        "Advisory write %s to %s failed: %s",
                        write.label,
                        write.location,
                        exc,
                    )
                    report.advisory_failures.append(write.label)
                    continue
                raise CommitAborted(write, exc, report.completed) from exc
            report.completed.append(write.label)
        return report

    async def _commit(self, write: PendingWrite) -> str:
        content = write.content
        expected_version = write.expected_version
        attempt = 0
        while True:
            try:
                return await write.store.write(
                    write.location,
                    content,
                    expected_version=expected_version,
                    message=write.message,
                )
            except DocumentConflictError:
                attempt += 1
                if write.rebase is None or attempt >= self._conflict_retry.attempts:
                    raise
                logger.info(
                    "Conflict writing %s, rebasing (attempt %d)",
                    write.location,
                    attempt,
                )
                await asyncio.sleep(self._conflict_retry.delay_for(attempt))
                try:
                    current = await write.store.read(write.location)
                except DocumentNotFoundError:
                    live_content, expected_version = None, None
                else:
                    live_content, expected_version = current.content, current.version
                try:
                    content = write.rebase(live_content)
                except ValueError as exc:
                    raise DocumentStoreError(
                        f"Could not rebase {write.label} onto {write.location}: {exc}"
                    ) from exc


__all__ = [
    "CommitAborted",
    "CommitReport",
    "CommitSequence",
    "PendingWrite",
    "WritePolicy",
]
