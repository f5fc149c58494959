"""Shared plumbing for GitHub REST API clients."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from redeemer.utils.http import RetryConfig, request_with_retry

GITHUB_API_VERSION = "2022-11-28"

# A write that timed out may already have landed; only reads are resent.
_RETRYABLE_METHODS = frozenset({"GET", "HEAD"})
_SINGLE_ATTEMPT = RetryConfig(attempts=1)


class GitHubAPIError(Exception):
    """Raised when GitHub answers with an unexpected status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubAPI:
    """Authenticated request helper bound to one token."""

    def __init__(
        self,
        *,
        token: str,
        api_url: str = "https://api.github.com",
        user_agent: str = "issue-redeemer",
        timeout_seconds: float = 10.0,
        retry_config: RetryConfig | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = api_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": user_agent,
        }
        self._timeout = timeout_seconds
        self._retry_config = retry_config or RetryConfig(attempts=3, backoff_seconds=1.0)
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send one request. Reads are retried, writes are sent exactly once."""
        retry_config = (
            self._retry_config if method.upper() in _RETRYABLE_METHODS else _SINGLE_ATTEMPT
        )
        async with httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            return await request_with_retry(
                client.request,
                method,
                path,
                params=params,
                json=json,
                retry_config=retry_config,
            )


def describe_error(response: httpx.Response) -> str:
    """Extract GitHub's error message without dumping whole bodies into logs."""
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.text[:200]


__all__ = ["GITHUB_API_VERSION", "GitHubAPI", "GitHubAPIError", "describe_error"]
