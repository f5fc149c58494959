"""One-way hashing of hardware identifiers before they reach a repository."""

from __future__ import annotations

import hashlib
import hmac


class HardwareIdHasher:
    """Hash hardware IDs with HMAC-SHA256, or SHA-256 when no key is set."""

    def __init__(self, *, secret: str | None = None) -> None:
        self._key = secret.encode("utf-8") if secret else None

    def hash(self, hwid: str) -> str:
        value = hwid.strip().encode("utf-8")
        if self._key is None:
            return hashlib.sha256(value).hexdigest()
        return hmac.new(self._key, value, hashlib.sha256).hexdigest()


__all__ = ["HardwareIdHasher"]
