"""Service layer exports."""

from .catalog import DocumentCatalog
from .commit import CommitAborted, CommitReport, CommitSequence, PendingWrite, WritePolicy
from .expiry_sweep import ExpirySweepService, SweepReport
from .hwid import HardwareIdHasher
from .issue_intake import IssueRedemptionProcessor, parse_issue_body
from .reconcile import ReconcileReport, ReconciliationService
from .redemption import RedemptionResult, RedemptionService, RedemptionStatus

__all__ = [
    "CommitAborted",
    "CommitReport",
    "CommitSequence",
    "DocumentCatalog",
    "ExpirySweepService",
    "HardwareIdHasher",
    "IssueRedemptionProcessor",
    "PendingWrite",
    "ReconcileReport",
    "ReconciliationService",
    "RedemptionResult",
    "RedemptionService",
    "RedemptionStatus",
    "SweepReport",
    "WritePolicy",
    "parse_issue_body",
]
