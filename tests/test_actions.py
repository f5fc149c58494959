try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import pytest

from actions import reconcile, redeem, sweep
from redeemer.services import ReconcileReport, RedemptionResult, RedemptionStatus, SweepReport

EVENT = {
    "action": "opened",
    "issue": {"number": 3, "body": "username: alice\nhwid: HW1\ncode: ABC-123", "labels": []},
    "repository": {"name": "requests", "owner": {"login": "acme"}},
}


class StubProcessor:
    def __init__(self, result) -> None:
        self.result = result

    async def process(self, event):
        return self.result


class StubService:
    def __init__(self, report) -> None:
        self.report = report

    async def run(self):
        return self.report


def test_load_issue_event_reads_actions_payload(tmp_path) -> None:
    path = tmp_path / "event.json"
    path.write_text(json.dumps(EVENT), encoding="utf-8")

    event = redeem.load_issue_event(str(path))

    assert event.issue.number == 3
    assert event.repository.name == "requests"


def test_load_issue_event_requires_path() -> None:
    with pytest.raises(ValueError):
        redeem.load_issue_event(None)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (RedemptionStatus.SUCCESS, redeem.EXIT_OK),
        (RedemptionStatus.CODE_INVALID_OR_USED, redeem.EXIT_OK),
        (RedemptionStatus.INVALID_INPUT, redeem.EXIT_OK),
        (RedemptionStatus.CONFLICT, redeem.EXIT_OK),
        (RedemptionStatus.STORE_UNAVAILABLE, redeem.EXIT_FAILURE),
        (RedemptionStatus.PARTIAL_GRANT_FAILURE, redeem.EXIT_FAILURE),
    ],
)
async def test_redeem_exit_code_flags_operational_failures(status, expected) -> None:
    event = redeem.IssueEvent.model_validate(EVENT)

    assert await redeem.run(event, StubProcessor(RedemptionResult(status))) == expected


@pytest.mark.asyncio
async def test_redeem_skipped_issue_exits_cleanly() -> None:
    event = redeem.IssueEvent.model_validate(EVENT)

    assert await redeem.run(event, StubProcessor(None)) == redeem.EXIT_OK


@pytest.mark.asyncio
async def test_sweep_exit_codes() -> None:
    assert await sweep.run(StubService(SweepReport(moved=2, usernames=["a", "b"]))) == sweep.EXIT_OK
    assert await sweep.run(StubService(SweepReport(failures=["revoked"]))) == sweep.EXIT_FAILURE


@pytest.mark.asyncio
async def test_reconcile_exit_codes() -> None:
    assert await reconcile.run(StubService(ReconcileReport(replayed=["alice:ABC-123"]))) == reconcile.EXIT_OK
    assert await reconcile.run(StubService(ReconcileReport(failed=True))) == reconcile.EXIT_FAILURE
