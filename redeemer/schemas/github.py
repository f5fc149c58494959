"""
Pydantic models for the parts of GitHub webhook payloads we consume.

Unknown fields are ignored, so the same models accept the full event file
written by GitHub Actions and the body of a repository webhook delivery.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class GitHubAccount(BaseModel):
    login: str


class GitHubLabel(BaseModel):
    name: str


class GitHubRepository(BaseModel):
    name: str
    owner: GitHubAccount


class GitHubIssue(BaseModel):
    number: int
    title: Optional[str] = None
    body: Optional[str] = None
    state: Optional[str] = None
    labels: List[GitHubLabel] = Field(default_factory=list)
    user: Optional[GitHubAccount] = None

    def has_label(self, name: str) -> bool:
        wanted = name.lower()
        return any(label.name.lower() == wanted for label in self.labels)


class IssueEvent(BaseModel):
    """Payload of an ``issues`` event."""

    action: Optional[str] = None
    issue: GitHubIssue
    repository: GitHubRepository


__all__ = [
    "GitHubAccount",
    "GitHubIssue",
    "GitHubLabel",
    "GitHubRepository",
    "IssueEvent",
]
