"""Filesystem-backed substitute for the GitHub contents API."""

from __future__ import annotations

import asyncio
import hashlib
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from redeemer.clients.document_store import (
    DocumentConflictError,
    DocumentLocation,
    DocumentNotFoundError,
    DocumentStoreError,
    VersionedDocument,
)
from redeemer.utils.documents import DocumentDecodeError, decode_document, encode_document


class LocalDocumentStore:
    """Keep each repository as a directory under ``root``.

    The version token is the SHA-256 of the stored bytes, so any rewrite with
    different content invalidates previously read versions.
    """

    def __init__(self, root: str) -> None:
        self._root = Path(root)
        self._lock = threading.Lock()

    def _resolve(self, location: DocumentLocation) -> Path:
        base = (self._root / location.owner / location.repo).resolve()
        target = (base / location.path).resolve()
        if base not in target.parents:
            raise DocumentStoreError(f"Path escapes repository root: {location}")
        return target

    @staticmethod
    def _version(raw: bytes) -> str:
        return hashlib.sha256(raw).hexdigest()

    async def read(self, location: DocumentLocation) -> VersionedDocument:
        path = self._resolve(location)

        def _read() -> bytes:
            try:
                return path.read_bytes()
            except FileNotFoundError as exc:
                raise DocumentNotFoundError(str(location)) from exc

        raw = await asyncio.to_thread(_read)
        try:
            content = decode_document(raw)
        except DocumentDecodeError as exc:
            raise DocumentStoreError(f"Corrupt document at {location}: {exc}") from exc
        return VersionedDocument(content=content, version=self._version(raw))

    async def write(
        self,
        location: DocumentLocation,
        content: Any,
        *,
        expected_version: Optional[str],
        message: str,
    ) -> str:
        path = self._resolve(location)
        payload = encode_document(content)

        def _write() -> str:
            with self._lock:
                current: bytes | None
                try:
                    current = path.read_bytes()
                except FileNotFoundError:
                    current = None

                if expected_version is None and current is not None:
                    raise DocumentConflictError(f"{location} already exists")
                if expected_version is not None:
                    if current is None:
                        raise DocumentConflictError(f"{location} no longer exists")
                    if self._version(current) != expected_version:
                        raise DocumentConflictError(f"{location} changed since it was read")

                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
                try:
                    with os.fdopen(fd, "wb") as handle:
                        handle.write(payload)
                    os.replace(tmp_path, path)
                except BaseException:
                    Path(tmp_path).unlink(missing_ok=True)
                    raise
            return self._version(payload)

        return await asyncio.to_thread(_write)


__all__ = ["LocalDocumentStore"]
