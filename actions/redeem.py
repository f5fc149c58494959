"""
GitHub Actions entrypoint for redemption issues.

Runs on ``issues: opened``. The event payload is read from the file named by
``GITHUB_EVENT_PATH``. User mistakes (bad code, missing fields) are answered
on the issue and exit 0; operational failures exit 1 so the workflow run is
flagged for an operator.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

from redeemer.core.config import get_settings
from redeemer.core.logging import configure_logging
from redeemer.dependencies import get_issue_processor
from redeemer.schemas import IssueEvent
from redeemer.services import IssueRedemptionProcessor

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def load_issue_event(path: str | None) -> IssueEvent:
    if not path:
        raise ValueError("GITHUB_EVENT_PATH is not set")
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return IssueEvent.model_validate(payload)


async def run(event: IssueEvent, processor: IssueRedemptionProcessor) -> int:
    result = await processor.process(event)
    if result is not None and result.operational_failure:
        logger.error(
            "Redemption needs operator attention: %s",
            result.status.value,
            extra={"issue_number": event.issue.number},
        )
        return EXIT_FAILURE
    return EXIT_OK


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        event = load_issue_event(settings.event_path)
    except (OSError, ValueError) as exc:
        logger.error("Could not load issue event: %s", exc)
        return EXIT_FAILURE

    try:
        return asyncio.run(run(event, get_issue_processor()))
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unexpected failure while processing issue #%s", event.issue.number)
        return EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
