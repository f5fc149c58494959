try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest
from pydantic import ValidationError

from redeemer.core.config import AppSettings, GitHubSettings, RedemptionSettings
from redeemer.services import DocumentCatalog


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("STORE_OWNER", "octo")
    monkeypatch.setenv("STORE_BACKEND", "github")
    monkeypatch.setenv("USERS_REPO", "private-users")
    monkeypatch.setenv("DEFAULT_DURATION_DAYS", "14")

    settings = AppSettings()

    assert settings.store.backend == "github"
    assert settings.redemption.default_duration_days == 14
    catalog = DocumentCatalog.from_settings(settings.store)
    assert str(catalog.users) == "octo/private-users:users.json"
    assert str(catalog.active_codes) == "octo/codes:active_codes.json"


def test_repo_tokens_fall_back_to_shared_token(monkeypatch) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setenv("PRIVATE_REPO_PAT", "shared")
    monkeypatch.setenv("USERS_REPO_TOKEN", "users-only")
    monkeypatch.delenv("CODES_REPO_TOKEN", raising=False)

    github = GitHubSettings()

    assert github.token == "shared"
    assert github.codes_repo_token == "shared"
    assert github.users_repo_token == "users-only"


def test_duration_must_be_positive(monkeypatch) -> None:
    monkeypatch.setenv("DEFAULT_DURATION_DAYS", "0")

    with pytest.raises(ValidationError):
        RedemptionSettings()
