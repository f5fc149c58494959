"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "GITHUB_TOKEN": "test-token",
    "STORE_OWNER": "acme",
    "STORE_BACKEND": "local",
    "STORE_LOCAL_ROOT": str(PROJECT_ROOT / ".pytest-store"),
    "HWID_HASH_SECRET": "test-hwid-secret",
    "CONFLICT_BACKOFF_SECONDS": "0",
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
