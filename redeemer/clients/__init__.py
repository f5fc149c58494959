"""Expose constructed client wrappers."""

from .document_store import (
    DocumentConflictError,
    DocumentLocation,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    VersionedDocument,
)
from .github_api import GitHubAPI, GitHubAPIError
from .github_contents import GitHubContentsClient
from .github_issues import GitHubIssuesClient
from .local_store import LocalDocumentStore

__all__ = [
    "DocumentConflictError",
    "DocumentLocation",
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "GitHubAPI",
    "GitHubAPIError",
    "GitHubContentsClient",
    "GitHubIssuesClient",
    "LocalDocumentStore",
    "VersionedDocument",
]
