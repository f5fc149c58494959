"""
Turn an opened issue into a redemption and answer on the issue.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional

import httpx

from redeemer.clients.github_api import GitHubAPIError
from redeemer.clients.github_issues import GitHubIssuesClient
from redeemer.schemas.github import IssueEvent
from redeemer.services.redemption import RedemptionResult, RedemptionService, RedemptionStatus

logger = logging.getLogger(__name__)

_FIELD_LINE = re.compile(r"^([^:]+):\s*(.+)$")


def parse_issue_body(body: str | None) -> Dict[str, str]:
    """Collect ``key: value`` lines. Keys are lower-cased; later lines win."""
    fields: Dict[str, str] = {}
    for raw_line in (body or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        match = _FIELD_LINE.match(line)
        if match:
            fields[match.group(1).strip().lower()] = match.group(2).strip()
    return fields


class IssueRedemptionProcessor:
    """Redeem the code in an issue and report the outcome on it."""

    def __init__(
        self,
        *,
        redemption_service: RedemptionService,
        issues_client: GitHubIssuesClient,
        processed_label: str = "processed",
        close_on_success: bool = True,
    ) -> None:
        self._redemption = redemption_service
        self._issues = issues_client
        self._processed_label = processed_label
        self._close_on_success = close_on_success

    async def process(self, event: IssueEvent) -> Optional[RedemptionResult]:
        """Handle one issue. Returns ``None`` when it was already processed."""
        issue = event.issue
        owner = event.repository.owner.login
        repo = event.repository.name
        context = {"repository": f"{owner}/{repo}", "issue_number": issue.number}

        if issue.has_label(self._processed_label):
            logger.info("Issue already processed", extra=context)
            return None

        fields = parse_issue_body(issue.body)
        action = fields.get("action")
        if action is not None and action.lower() != "redeem":
            result = RedemptionResult(RedemptionStatus.UNSUPPORTED_ACTION)
        else:
            result = await self._redemption.redeem(
                username=fields.get("username"),
                hwid=fields.get("hwid"),
                code=fields.get("code"),
            )

        logger.info("Redemption outcome: %s", result.status.value, extra=context)
        try:
            await self._issues.comment(
                owner=owner, repo=repo, issue_number=issue.number, body=result.reply_text()
            )
        except (GitHubAPIError, httpx.HTTPError) as exc:
            logger.error(
                "Could not reply on issue: %s",
                exc,
                extra={**context, "status": result.status.value},
            )

        # Label even without a reply so a redelivered event cannot redeem twice.
        if result.ok:
            await self._mark_processed(owner=owner, repo=repo, issue_number=issue.number)
        return result

    async def _mark_processed(self, *, owner: str, repo: str, issue_number: int) -> None:
        # The grant is already committed; tidying the issue is best-effort.
        try:
            await self._issues.add_labels(
                owner=owner,
                repo=repo,
                issue_number=issue_number,
                labels=[self._processed_label],
            )
            if self._close_on_success:
                await self._issues.close(owner=owner, repo=repo, issue_number=issue_number)
        except (GitHubAPIError, httpx.HTTPError) as exc:
            logger.warning(
                "Could not label or close issue: %s",
                exc,
                extra={"repository": f"{owner}/{repo}", "issue_number": issue_number},
            )


__all__ = ["IssueRedemptionProcessor", "parse_issue_body"]
