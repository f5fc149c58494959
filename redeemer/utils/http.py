"""HTTP utilities providing retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RetryConfig:
    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 1.0) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds

    def delay_for(self, attempt: int) -> float:
        """Linear backoff for the given 1-based attempt number."""
        return self.backoff_seconds * attempt


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Call ``func`` and retry transport errors and transient server responses.

    Any other response, including 4xx, is returned unchanged so the caller can
    interpret it. Conflicts in particular must never be retried blindly here.
    """
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: Exception | None = None

    while attempt < config.attempts:
        try:
            response = await func(*args, **kwargs)
        except httpx.TransportError as exc:
            last_exception = exc
            logger.warning("Transport error talking to %s: %s", args[0] if args else "?", exc)
        else:
            if response.status_code not in RETRYABLE_STATUS_CODES:
                return response
            last_exception = httpx.HTTPStatusError(
                f"Transient status {response.status_code}",
                request=response.request,
                response=response,
            )
            if attempt + 1 >= config.attempts:
                return response
        attempt += 1
        if attempt >= config.attempts:
            break
        await asyncio.sleep(config.delay_for(attempt))

    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Request failed without raising an exception")


__all__ = ["RETRYABLE_STATUS_CODES", "RetryConfig", "request_with_retry"]
