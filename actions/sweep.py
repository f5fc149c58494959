"""
Scheduled entrypoint that revokes expired users.

Exits 1 when any commit failed so the scheduler raises an alert.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from redeemer.core.config import get_settings
from redeemer.core.logging import configure_logging
from redeemer.dependencies import get_expiry_sweep_service
from redeemer.services import ExpirySweepService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


async def run(service: ExpirySweepService) -> int:
    report = await service.run()
    if not report.ok:
        logger.error("Expiry sweep failed at: %s", ", ".join(report.failures))
        return EXIT_FAILURE
    logger.info("Expiry sweep moved %d users", report.moved)
    return EXIT_OK


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        return asyncio.run(run(get_expiry_sweep_service()))
    except Exception:  # pylint: disable=broad-except
        logger.exception("Revoke error")
        return EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
