"""
FastAPI routes for the redemption webhook.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import ValidationError

from redeemer.core.config import AppSettings
from redeemer.dependencies import get_app_settings, get_issue_processor
from redeemer.schemas import IssueEvent
from redeemer.services import IssueRedemptionProcessor

router = APIRouter()
logger = logging.getLogger(__name__)

_HANDLED_ISSUE_ACTIONS = frozenset({"opened", "reopened"})

# Redemptions run one at a time; the stores have no cross-request locking.
_redeem_lock = asyncio.Lock()


def _verify_signature(secret: str, body: bytes, signature: str | None) -> None:
    if not signature or not signature.startswith("sha256="):
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Missing signature.")
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(signature.removeprefix("sha256="), expected):
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Invalid signature.")


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post("/integrations/github/webhook", status_code=HTTPStatus.OK)
async def github_webhook(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    processor: Annotated[IssueRedemptionProcessor, Depends(get_issue_processor)],
    x_github_event: Annotated[str | None, Header()] = None,
    x_hub_signature_256: Annotated[str | None, Header()] = None,
) -> dict:
    """Redeem the code in a newly opened issue and reply on it."""
    body = await request.body()
    secret = settings.github.webhook_secret
    if secret:
        _verify_signature(secret, body, x_hub_signature_256)

    if x_github_event == "ping":
        return {"status": "pong"}
    if x_github_event != "issues":
        return {"status": "ignored"}

    try:
        payload: Any = json.loads(body)
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Body is not JSON.") from exc
    if not isinstance(payload, dict) or payload.get("action") not in _HANDLED_ISSUE_ACTIONS:
        return {"status": "ignored"}

    try:
        event = IssueEvent.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY, detail="Malformed issues event."
        ) from exc

    async with _redeem_lock:
        result = await processor.process(event)

    if result is None:
        return {"status": "ignored"}
    return {"status": result.status.value}


__all__ = ["router"]
