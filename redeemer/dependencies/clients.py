"""
Factory functions to provide shared clients and services.

Used as FastAPI dependencies by the webhook routes and called directly by the
one-shot actions.
"""

from functools import lru_cache

from redeemer.clients import (
    DocumentStore,
    GitHubAPI,
    GitHubContentsClient,
    GitHubIssuesClient,
    LocalDocumentStore,
)
from redeemer.core.config import AppSettings, get_settings
from redeemer.services import (
    CommitSequence,
    DocumentCatalog,
    ExpirySweepService,
    HardwareIdHasher,
    IssueRedemptionProcessor,
    ReconciliationService,
    RedemptionService,
)
from redeemer.utils.http import RetryConfig


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """Settings dependency, overridable per test."""
    return _settings()


def _github_api(token: str) -> GitHubAPI:
    settings = _settings()
    return GitHubAPI(
        token=token,
        api_url=settings.github.api_url,
        user_agent=settings.github.user_agent,
        timeout_seconds=settings.github.timeout_seconds,
    )


@lru_cache()
def _local_store() -> LocalDocumentStore:
    return LocalDocumentStore(_settings().store.local_root)


@lru_cache()
def get_codes_store() -> DocumentStore:
    """Provide the store holding the active and expired code lists."""
    settings = _settings()
    if settings.store.backend == "local":
        return _local_store()
    return GitHubContentsClient(
        _github_api(settings.github.codes_repo_token), branch=settings.store.branch
    )


@lru_cache()
def get_users_store() -> DocumentStore:
    """Provide the store holding the user and revoked lists."""
    settings = _settings()
    if settings.store.backend == "local":
        return _local_store()
    return GitHubContentsClient(
        _github_api(settings.github.users_repo_token), branch=settings.store.branch
    )


@lru_cache()
def get_issues_client() -> GitHubIssuesClient:
    """Provide the client used to reply on request issues."""
    return GitHubIssuesClient(_github_api(_settings().github.token))


@lru_cache()
def get_document_catalog() -> DocumentCatalog:
    return DocumentCatalog.from_settings(_settings().store)


@lru_cache()
def get_hwid_hasher() -> HardwareIdHasher:
    return HardwareIdHasher(secret=_settings().redemption.hwid_hash_secret)


def _conflict_retry() -> RetryConfig:
    redemption = _settings().redemption
    return RetryConfig(
        attempts=redemption.conflict_retry_attempts,
        backoff_seconds=redemption.conflict_backoff_seconds,
    )


def get_commit_sequence() -> CommitSequence:
    return CommitSequence(conflict_retry=_conflict_retry())


def get_redemption_service() -> RedemptionService:
    """Build the redemption service over the configured stores."""
    return RedemptionService(
        codes_store=get_codes_store(),
        users_store=get_users_store(),
        catalog=get_document_catalog(),
        hasher=get_hwid_hasher(),
        default_duration_days=_settings().redemption.default_duration_days,
        commit_sequence=get_commit_sequence(),
    )


def get_issue_processor() -> IssueRedemptionProcessor:
    """Build the processor that answers redemption issues."""
    redemption = _settings().redemption
    return IssueRedemptionProcessor(
        redemption_service=get_redemption_service(),
        issues_client=get_issues_client(),
        processed_label=redemption.processed_label,
        close_on_success=redemption.close_on_success,
    )


def get_expiry_sweep_service() -> ExpirySweepService:
    return ExpirySweepService(
        codes_store=get_codes_store(),
        users_store=get_users_store(),
        catalog=get_document_catalog(),
        commit_sequence=get_commit_sequence(),
        restart_retry=_conflict_retry(),
    )


def get_reconciliation_service() -> ReconciliationService:
    return ReconciliationService(
        codes_store=get_codes_store(),
        users_store=get_users_store(),
        catalog=get_document_catalog(),
        hasher=get_hwid_hasher(),
        commit_sequence=get_commit_sequence(),
    )


__all__ = [
    "get_app_settings",
    "get_codes_store",
    "get_commit_sequence",
    "get_document_catalog",
    "get_expiry_sweep_service",
    "get_hwid_hasher",
    "get_issue_processor",
    "get_issues_client",
    "get_reconciliation_service",
    "get_redemption_service",
    "get_users_store",
]
