"""
JSON wire codec and collection layout for the stored documents.

Every document is an object wrapping a single list, e.g. ``{"users": [...]}``;
other top-level fields are carried through rewrites untouched.
Older files written as a bare list are still accepted and are rewritten in the
wrapped layout on their next commit.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

ACTIVE_CODES_KEY = "codes"
EXPIRED_CODES_KEY = "expired"
USERS_KEY = "users"
REVOKED_KEY = "revoked"

logger = logging.getLogger(__name__)


class DocumentDecodeError(ValueError):
    """Raised when stored bytes are not a JSON document."""


def encode_document(content: Any) -> bytes:
    """Serialize content the way it is committed: indented JSON plus newline."""
    return (json.dumps(content, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def decode_document(raw: bytes) -> Any:
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DocumentDecodeError("Document is not valid UTF-8.") from exc
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise DocumentDecodeError(f"Document is not valid JSON: {exc}") from exc


def load_collection(content: Any, key: str) -> List[Dict[str, Any]]:
    """Return the record list held by a document, whichever layout it uses."""
    if content is None:
        return []
    if isinstance(content, list):
        items = content
    elif isinstance(content, dict):
        items = content.get(key) or []
        if not isinstance(items, list):
            raise DocumentDecodeError(f"Expected a list under '{key}'.")
    else:
        raise DocumentDecodeError(f"Unsupported document layout for '{key}'.")
    records = [dict(item) for item in items if isinstance(item, dict)]
    if len(records) != len(items):
        logger.warning(
            "Ignoring %d non-object entries under '%s'; they are dropped on the next rewrite.",
            len(items) - len(records),
            key,
        )
    return records


def dump_collection(
    records: List[Dict[str, Any]], key: str, base: Optional[Any] = None
) -> Dict[str, Any]:
    """Wrap records under ``key``, keeping any other top-level fields of ``base``."""
    document = dict(base) if isinstance(base, dict) else {}
    document[key] = list(records)
    return document


def normalize_code(value: Any) -> str:
    """Codes compare case-insensitively and ignore surrounding whitespace."""
    return str(value or "").strip().upper()


def normalize_username(value: Any) -> str:
    return str(value or "").strip().lower()


__all__ = [
    "ACTIVE_CODES_KEY",
    "DocumentDecodeError",
    "EXPIRED_CODES_KEY",
    "REVOKED_KEY",
    "USERS_KEY",
    "decode_document",
    "dump_collection",
    "encode_document",
    "load_collection",
    "normalize_code",
    "normalize_username",
]
