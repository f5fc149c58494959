"""GitHub issues client for replying to redemption requests."""

from __future__ import annotations

from typing import Iterable

from redeemer.clients.github_api import GitHubAPI, GitHubAPIError, describe_error


class GitHubIssuesClient:
    """Comment on, label and close issues in the public request repository."""

    def __init__(self, api: GitHubAPI) -> None:
        self._api = api

    async def comment(self, *, owner: str, repo: str, issue_number: int, body: str) -> None:
        response = await self._api.request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json={"body": body},
        )
        if response.status_code != 201:
            raise GitHubAPIError(
                f"Commenting on {owner}/{repo}#{issue_number} failed: {describe_error(response)}",
                status_code=response.status_code,
            )

    async def add_labels(
        self, *, owner: str, repo: str, issue_number: int, labels: Iterable[str]
    ) -> None:
        response = await self._api.request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/labels",
            json={"labels": list(labels)},
        )
        if response.status_code != 200:
            raise GitHubAPIError(
                f"Labelling {owner}/{repo}#{issue_number} failed: {describe_error(response)}",
                status_code=response.status_code,
            )

    async def close(self, *, owner: str, repo: str, issue_number: int) -> None:
        response = await self._api.request(
            "PATCH",
            f"/repos/{owner}/{repo}/issues/{issue_number}",
            json={"state": "closed", "state_reason": "completed"},
        )
        if response.status_code != 200:
            raise GitHubAPIError(
                f"Closing {owner}/{repo}#{issue_number} failed: {describe_error(response)}",
                status_code=response.status_code,
            )


__all__ = ["GitHubIssuesClient"]
