"""Expose dependency helpers for FastAPI routers and actions."""

from .clients import (
    get_app_settings,
    get_codes_store,
    get_commit_sequence,
    get_document_catalog,
    get_expiry_sweep_service,
    get_hwid_hasher,
    get_issue_processor,
    get_issues_client,
    get_reconciliation_service,
    get_redemption_service,
    get_users_store,
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
