try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import hashlib
import hmac
import json
from typing import Optional

import httpx
import pytest

from redeemer.main import app
from redeemer.services import RedemptionResult, RedemptionStatus

pytestmark = pytest.mark.anyio

WEBHOOK = "/api/integrations/github/webhook"


class RecordingProcessor:
    def __init__(self) -> None:
        self.result: Optional[RedemptionResult] = RedemptionResult(
            RedemptionStatus.SUCCESS,
            username="alice",
            code="ABC-123",
            granted_expiry="2025-03-31T12:00:00+00:00",
        )
        self.events = []

    async def process(self, event):
        self.events.append(event)
        return self.result


def _issue_payload(action: str = "opened") -> dict:
    return {
        "action": action,
        "issue": {
            "number": 7,
            "body": "username: alice\nhwid: HW1\ncode: ABC-123",
            "labels": [],
        },
        "repository": {"name": "requests", "owner": {"login": "acme"}},
        "sender": {"login": "alice"},
    }


def _sign(secret: str, body: bytes) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


@pytest.fixture()
def overrides():
    from redeemer import dependencies
    from redeemer.core.config import get_settings

    processor = RecordingProcessor()
    settings = get_settings().model_copy(deep=True)
    settings.github.webhook_secret = None

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_issue_processor: lambda: processor,
            dependencies.get_app_settings: lambda: settings,
        }
    )

    yield processor, settings

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(overrides):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client


async def test_healthcheck(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_opened_issue_is_redeemed(overrides, client):
    processor, _ = overrides

    response = await client.post(WEBHOOK, json=_issue_payload(), headers={"X-GitHub-Event": "issues"})

    assert response.status_code == 200
    assert response.json() == {"status": "success"}
    (event,) = processor.events
    assert event.issue.number == 7
    assert event.repository.owner.login == "acme"


async def test_failed_redemption_status_is_reported(overrides, client):
    processor, _ = overrides
    processor.result = RedemptionResult(RedemptionStatus.CODE_EXPIRED)

    response = await client.post(WEBHOOK, json=_issue_payload(), headers={"X-GitHub-Event": "issues"})

    assert response.status_code == 200
    assert response.json() == {"status": "code_expired"}


async def test_processed_issue_reports_ignored(overrides, client):
    processor, _ = overrides
    processor.result = None

    response = await client.post(WEBHOOK, json=_issue_payload(), headers={"X-GitHub-Event": "issues"})

    assert response.json() == {"status": "ignored"}


async def test_ping_and_other_events(overrides, client):
    processor, _ = overrides

    ping = await client.post(WEBHOOK, json={"zen": "hi"}, headers={"X-GitHub-Event": "ping"})
    push = await client.post(WEBHOOK, json={"ref": "main"}, headers={"X-GitHub-Event": "push"})
    edited = await client.post(
        WEBHOOK, json=_issue_payload("edited"), headers={"X-GitHub-Event": "issues"}
    )

    assert ping.json() == {"status": "pong"}
    assert push.json() == {"status": "ignored"}
    assert edited.json() == {"status": "ignored"}
    assert processor.events == []


async def test_invalid_bodies_are_rejected(overrides, client):
    not_json = await client.post(
        WEBHOOK, content=b"{not json", headers={"X-GitHub-Event": "issues"}
    )
    missing_issue = await client.post(
        WEBHOOK,
        json={"action": "opened", "repository": {"name": "requests", "owner": {"login": "acme"}}},
        headers={"X-GitHub-Event": "issues"},
    )

    assert not_json.status_code == 400
    assert missing_issue.status_code == 422


async def test_signature_is_required_when_secret_configured(overrides, client):
    processor, settings = overrides
    settings.github.webhook_secret = "hook-secret"
    body = json.dumps(_issue_payload()).encode("utf-8")

    unsigned = await client.post(WEBHOOK, content=body, headers={"X-GitHub-Event": "issues"})
    forged = await client.post(
        WEBHOOK,
        content=body,
        headers={"X-GitHub-Event": "issues", "X-Hub-Signature-256": _sign("wrong", body)},
    )
    signed = await client.post(
        WEBHOOK,
        content=body,
        headers={
            "X-GitHub-Event": "issues",
            "X-Hub-Signature-256": _sign("hook-secret", body),
            "Content-Type": "application/json",
        },
    )

    assert unsigned.status_code == 401
    assert forged.status_code == 401
    assert signed.status_code == 200
    assert len(processor.events) == 1
