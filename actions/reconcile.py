"""Scheduled entrypoint that replays grants lost after a code was consumed."""

from __future__ import annotations

import asyncio
import logging
import sys

from redeemer.core.config import get_settings
from redeemer.core.logging import configure_logging
from redeemer.dependencies import get_reconciliation_service
from redeemer.services import ReconciliationService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


async def run(service: ReconciliationService) -> int:
    report = await service.run()
    if not report.ok:
        return EXIT_FAILURE
    if report.replayed:
        logger.warning("Replayed %d lost grants: %s", len(report.replayed), ", ".join(report.replayed))
    return EXIT_OK


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        return asyncio.run(run(get_reconciliation_service()))
    except Exception:  # pylint: disable=broad-except
        logger.exception("Reconciliation failed")
        return EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
