"""Status transition rule for acceptance records.

A published status may only move to the tallied majority when the crowd
has produced enough reports, a confident enough provisional score and a
clear (strictly greater than ratio-to-one) majority. Raw ACCEPTED /
NOT_ACCEPTED tallies are used; agreement with the newest report plays no
part. Nothing here ever moves an established status back to PENDING.
"""

from src.verification.config import VerificationConfig
from src.verification.schemas import AcceptanceStatus, ConsensusCounts


def has_clear_majority(counts: ConsensusCounts, ratio: float = 2.0) -> bool:
    """True when the majority strictly exceeds ``ratio`` times the minority."""
    return counts.majority > counts.minority * ratio


def meets_consensus(
    counts: ConsensusCounts,
    provisional_score: float,
    config: VerificationConfig | None = None,
) -> bool:
    """Check all three consensus gates."""
    cfg = config or VerificationConfig()
    return (
        counts.total >= cfg.min_verifications_for_consensus
        and provisional_score >= cfg.min_confidence_for_status_change
        and has_clear_majority(counts, cfg.clear_majority_ratio)
    )


def determine_acceptance_status(
    current: AcceptanceStatus | None,
    counts: ConsensusCounts,
    provisional_score: float,
    config: VerificationConfig | None = None,
) -> AcceptanceStatus:
    """Resolve the status to publish after a new report.

    Args:
        current: Status of the existing record, or None when the record is new.
        counts: Live ACCEPTED / NOT_ACCEPTED tallies including the new report.
        provisional_score: Unrounded confidence score from the formula.
        config: Consensus thresholds.

    Returns:
        PENDING for a new record; the majority status when consensus holds;
        otherwise the current status, with UNKNOWN promoted to PENDING.
    """
    if current is None:
        return AcceptanceStatus.PENDING

    if meets_consensus(counts, provisional_score, config):
        return counts.majority_status

    if current == AcceptanceStatus.UNKNOWN:
        return AcceptanceStatus.PENDING
    return current
