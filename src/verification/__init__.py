"""Crowd verification of provider plan acceptance.

Components:
- VerificationService: Report submission with consensus-gated status changes
- VoteLedger: Up/down votes with flip support
- AbuseGuard: Sybil-window duplicate submission checks
- VerificationRepository: asyncpg persistence with advisory-locked transactions
- run_decay_recalculation / run_expiry_cleanup: Lifecycle batch jobs
"""

from src.verification.abuse_guard import AbuseGuard, DuplicateSubmissionError
from src.verification.cleanup_job import ExpiryCleanupResult, run_expiry_cleanup
from src.verification.config import VerificationConfig
from src.verification.consensus import determine_acceptance_status, meets_consensus
from src.verification.decay_job import DecayRecalculationResult, run_decay_recalculation
from src.verification.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    StorageError,
    VerificationError,
)
from src.verification.repository import VerificationRepository
from src.verification.schemas import (
    AcceptanceRecord,
    AcceptanceStatus,
    ConsensusCounts,
    PairAggregate,
    ReportLogEntry,
    ReportSubmission,
    SubmissionResult,
    VerificationSource,
    VerificationType,
    VoteDirection,
    VoteRecord,
    VoteResult,
)
from src.verification.service import VerificationService
from src.verification.votes import VoteLedger

__all__ = [
    "AbuseGuard",
    "AcceptanceRecord",
    "AcceptanceStatus",
    "BadRequestError",
    "ConflictError",
    "ConsensusCounts",
    "DecayRecalculationResult",
    "DuplicateSubmissionError",
    "ExpiryCleanupResult",
    "NotFoundError",
    "PairAggregate",
    "ReportLogEntry",
    "ReportSubmission",
    "StorageError",
    "SubmissionResult",
    "VerificationConfig",
    "VerificationError",
    "VerificationRepository",
    "VerificationService",
    "VerificationSource",
    "VerificationType",
    "VoteDirection",
    "VoteLedger",
    "VoteRecord",
    "VoteResult",
    "determine_acceptance_status",
    "meets_consensus",
    "run_decay_recalculation",
    "run_expiry_cleanup",
]
