"""
Application configuration models and helpers.

Centralizes settings management so the issue webhook, the redeem action and the
scheduled sweep share one configuration surface. Repository owners and names
live here and are handed to the document stores explicitly.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


_BASE_CONFIG = SettingsConfigDict(populate_by_name=True, extra="ignore")


class GitHubSettings(BaseSettings):
    """Credentials and endpoints for the GitHub REST API."""

    model_config = _BASE_CONFIG

    token: str = Field(
        ...,
        validation_alias=AliasChoices("GITHUB_TOKEN", "PRIVATE_REPO_PAT"),
        description="Token with write access to the private code and user repos.",
    )
    codes_token: Optional[str] = Field(
        None,
        validation_alias="CODES_REPO_TOKEN",
        description="Optional token scoped to the codes repository.",
    )
    users_token: Optional[str] = Field(
        None,
        validation_alias="USERS_REPO_TOKEN",
        description="Optional token scoped to the users repository.",
    )
    api_url: str = Field("https://api.github.com", validation_alias="GITHUB_API_URL")
    user_agent: str = Field("issue-redeemer", validation_alias="GITHUB_USER_AGENT")
    timeout_seconds: float = Field(
        10.0,
        validation_alias="GITHUB_TIMEOUT_SECONDS",
    )
    webhook_secret: Optional[str] = Field(
        None,
        validation_alias="GITHUB_WEBHOOK_SECRET",
        description="Shared secret used to verify X-Hub-Signature-256 headers.",
    )

    @property
    def codes_repo_token(self) -> str:
        return self.codes_token or self.token

    @property
    def users_repo_token(self) -> str:
        return self.users_token or self.token


class StoreSettings(BaseSettings):
    """Where each JSON document lives."""

    model_config = _BASE_CONFIG

    backend: Literal["github", "local"] = Field("github", validation_alias="STORE_BACKEND")
    local_root: str = Field(
        ".store",
        validation_alias="STORE_LOCAL_ROOT",
        description="Directory used by the local backend, one sub-directory per repo.",
    )
    owner: str = Field(..., validation_alias="STORE_OWNER")
    branch: Optional[str] = Field(
        None,
        validation_alias="STORE_BRANCH",
        description="Branch to read and commit on. Defaults to the repo default branch.",
    )
    codes_repo: str = Field("codes", validation_alias="CODES_REPO")
    users_repo: str = Field("users", validation_alias="USERS_REPO")
    active_codes_path: str = Field("active_codes.json", validation_alias="ACTIVE_CODES_PATH")
    expired_codes_path: str = Field("expired_codes.json", validation_alias="EXPIRED_CODES_PATH")
    users_path: str = Field("users.json", validation_alias="USERS_PATH")
    revoked_path: str = Field("revoked.json", validation_alias="REVOKED_PATH")


class RedemptionSettings(BaseSettings):
    """Business rules for redemption and the commit sequence."""

    model_config = _BASE_CONFIG

    default_duration_days: int = Field(
        30,
        validation_alias="DEFAULT_DURATION_DAYS",
    )
    hwid_hash_secret: Optional[str] = Field(
        None,
        validation_alias="HWID_HASH_SECRET",
        description="Key for HMAC hashing of hardware identifiers.",
    )
    processed_label: str = Field("processed", validation_alias="PROCESSED_LABEL")
    close_on_success: bool = Field(True, validation_alias="CLOSE_ON_SUCCESS")
    conflict_retry_attempts: int = Field(
        3,
        validation_alias="CONFLICT_RETRY_ATTEMPTS",
    )
    conflict_backoff_seconds: float = Field(
        0.5,
        validation_alias="CONFLICT_BACKOFF_SECONDS",
    )

    @field_validator("default_duration_days", "conflict_retry_attempts")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


class AppSettings(BaseSettings):
    """Root settings object shared by the webhook app and the actions."""

    model_config = SettingsConfigDict(
        populate_by_name=True,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    event_path: Optional[str] = Field(
        None,
        validation_alias="GITHUB_EVENT_PATH",
        description="Path to the triggering event payload inside GitHub Actions.",
    )
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    redemption: RedemptionSettings = Field(default_factory=RedemptionSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GitHubSettings",
    "RedemptionSettings",
    "StoreSettings",
    "get_settings",
]
