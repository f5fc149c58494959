"""Public schema exports."""

from .github import GitHubAccount, GitHubIssue, GitHubLabel, GitHubRepository, IssueEvent
from .records import CodeRecord, TokenGrant, UserRecord
from .requests import RedeemRequest

__all__ = [
    "CodeRecord",
    "GitHubAccount",
    "GitHubIssue",
    "GitHubLabel",
    "GitHubRepository",
    "IssueEvent",
    "RedeemRequest",
    "TokenGrant",
    "UserRecord",
]
