"""GitHub contents API used as a versioned JSON document store."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from redeemer.clients.document_store import (
    DocumentConflictError,
    DocumentLocation,
    DocumentNotFoundError,
    DocumentStoreError,
    VersionedDocument,
)
from redeemer.clients.github_api import GitHubAPI, describe_error
from redeemer.utils.documents import DocumentDecodeError, decode_document, encode_document

logger = logging.getLogger(__name__)


def _json_body(response: httpx.Response, location: DocumentLocation) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise DocumentStoreError(
            f"{response.request.method} {location} returned a non-JSON body"
        ) from exc


class GitHubContentsClient:
    """Read and conditionally commit JSON files in GitHub repositories.

    The blob ``sha`` returned by the contents API is the version token. GitHub
    rejects a PUT whose ``sha`` is stale with 409, and a PUT without ``sha``
    against an existing file with 422, which gives the create-only behaviour
    for free.
    """

    def __init__(self, api: GitHubAPI, *, branch: str | None = None) -> None:
        self._api = api
        self._branch = branch

    @staticmethod
    def _contents_path(location: DocumentLocation) -> str:
        return (
            f"/repos/{location.owner}/{location.repo}/contents/"
            f"{quote(location.path.lstrip('/'), safe='/')}"
        )

    async def read(self, location: DocumentLocation) -> VersionedDocument:
        params = {"ref": self._branch} if self._branch else None
        try:
            response = await self._api.request("GET", self._contents_path(location), params=params)
        except httpx.HTTPError as exc:
            raise DocumentStoreError(f"GET {location} failed: {exc}") from exc

        if response.status_code == 404:
            raise DocumentNotFoundError(str(location))
        if response.status_code != 200:
            raise DocumentStoreError(
                f"GET {location} failed {response.status_code}: {describe_error(response)}"
            )

        payload = _json_body(response, location)
        if not isinstance(payload, dict) or payload.get("type", "file") != "file":
            raise DocumentStoreError(f"{location} is not a file")

        sha = payload.get("sha")
        if not sha:
            raise DocumentStoreError(f"GET {location} returned no sha")

        encoded = payload.get("content") or ""
        if payload.get("encoding") != "base64" or (not encoded and payload.get("size")):
            # Files over 1MB come back without inline content.
            encoded = await self._fetch_blob(location, sha)

        raw = self._decode_base64(location, encoded)
        try:
            content = decode_document(raw)
        except DocumentDecodeError as exc:
            raise DocumentStoreError(f"Corrupt document at {location}: {exc}") from exc
        return VersionedDocument(content=content, version=sha)

    async def _fetch_blob(self, location: DocumentLocation, sha: str) -> str:
        path = f"/repos/{location.owner}/{location.repo}/git/blobs/{sha}"
        try:
            response = await self._api.request("GET", path)
        except httpx.HTTPError as exc:
            raise DocumentStoreError(f"GET blob for {location} failed: {exc}") from exc
        if response.status_code != 200:
            raise DocumentStoreError(
                f"GET blob for {location} failed {response.status_code}: "
                f"{describe_error(response)}"
            )
        payload = _json_body(response, location)
        return (payload.get("content") if isinstance(payload, dict) else None) or ""

    @staticmethod
    def _decode_base64(location: DocumentLocation, encoded: str) -> bytes:
        try:
            return base64.b64decode("".join(encoded.split()), validate=True)
        except (ValueError, binascii.Error) as exc:
            raise DocumentStoreError(f"{location} has invalid base64 content") from exc

    async def write(
        self,
        location: DocumentLocation,
        content: Any,
        *,
        expected_version: Optional[str],
        message: str,
    ) -> str:
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(encode_document(content)).decode("ascii"),
        }
        if expected_version is not None:
            body["sha"] = expected_version
        if self._branch:
            body["branch"] = self._branch

        try:
            response = await self._api.request("PUT", self._contents_path(location), json=body)
        except httpx.HTTPError as exc:
            # The request may have reached GitHub; the document state is unknown.
            raise DocumentStoreError(f"PUT {location} did not complete: {exc}") from exc

        if response.status_code in (200, 201):
            payload = _json_body(response, location)
            content_info = payload.get("content") if isinstance(payload, dict) else None
            new_sha = content_info.get("sha") if isinstance(content_info, dict) else None
            if not new_sha:
                raise DocumentStoreError(f"PUT {location} returned no sha")
            logger.info("Committed %s", location, extra={"commit_message": message})
            return new_sha

        detail = describe_error(response)
        if response.status_code == 409:
            raise DocumentConflictError(f"{location} changed since it was read: {detail}")
        if response.status_code == 422 and expected_version is None:
            raise DocumentConflictError(f"{location} already exists: {detail}")
        raise DocumentStoreError(f"PUT {location} failed {response.status_code}: {detail}")


__all__ = ["GitHubContentsClient"]
