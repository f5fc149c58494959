"""
Versioned JSON document store contract.

A store reads a document together with an opaque version token and only
accepts a write when the caller presents the token of the live document. A
write without a token creates the document and fails if it already exists.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol


class DocumentStoreError(Exception):
    """Raised when the backing store cannot serve a read or write."""


class DocumentNotFoundError(DocumentStoreError):
    """Raised when the requested document does not exist."""


class DocumentConflictError(DocumentStoreError):
    """Raised when a conditional write loses against a newer version."""


@dataclass(frozen=True)
class DocumentLocation:
    """Logical address of a document: a path inside one repository."""

    owner: str
    repo: str
    path: str

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}:{self.path}"


@dataclass(frozen=True)
class VersionedDocument:
    content: Any
    version: str


class DocumentStore(Protocol):
    async def read(self, location: DocumentLocation) -> VersionedDocument:
        ...

    async def write(
        self,
        location: DocumentLocation,
        content: Any,
        *,
        expected_version: Optional[str],
        message: str,
    ) -> str:
        ...


__all__ = [
    "DocumentConflictError",
    "DocumentLocation",
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "VersionedDocument",
]
