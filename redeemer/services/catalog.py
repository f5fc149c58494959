"""Locations of the four JSON documents."""

from __future__ import annotations

from dataclasses import dataclass

from redeemer.clients.document_store import DocumentLocation
from redeemer.core.config import StoreSettings


@dataclass(frozen=True)
class DocumentCatalog:
    active_codes: DocumentLocation
    expired_codes: DocumentLocation
    users: DocumentLocation
    revoked: DocumentLocation

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "DocumentCatalog":
        owner = settings.owner
        return cls(
            active_codes=DocumentLocation(owner, settings.codes_repo, settings.active_codes_path),
            expired_codes=DocumentLocation(owner, settings.codes_repo, settings.expired_codes_path),
            users=DocumentLocation(owner, settings.users_repo, settings.users_path),
            revoked=DocumentLocation(owner, settings.users_repo, settings.revoked_path),
        )


__all__ = ["DocumentCatalog"]
