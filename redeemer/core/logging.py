"""
Logging setup shared by the webhook app and the one-shot actions.

Actions log to stdout so the runner captures a single ordered stream.
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the project-wide format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request at INFO, including URLs for private repos.
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["configure_logging"]
