"""Vote ledger for report log entries.

One vote per (report, voter address). A repeat vote in the same direction
is rejected; a vote in the opposite direction flips the existing record and
moves one count from the old counter to the new one inside the same
transaction. Counter changes are SQL increments, never read-then-write.

After the vote commits, the linked acceptance record's confidence score is
recomputed under the per-pair lock that submissions take. Votes never change
the published status.
"""

import logging
import time
from datetime import datetime

import asyncpg

from src.confidence.schemas import ConfidenceInput
from src.confidence.service import ConfidenceService
from src.observability.metrics import get_metrics
from src.providers.repository import ProviderRepository
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
    ReportLogEntry,
    VoteDirection,
    VoteRecord,
    VoteResult,
)
from src.verification.service import Clock, pair_lock_key, utcnow

logger = logging.getLogger(__name__)


def vote_lock_key(report_id: str, voter_ip: str) -> str:
    return f"vote:{report_id}:{voter_ip}"


def parse_direction(value: VoteDirection | str | None) -> VoteDirection:
    """Normalise a direction, raising BadRequestError for anything else."""
    if isinstance(value, VoteDirection):
        return value
    try:
        return VoteDirection(str(value).strip().lower())
    except ValueError:
        raise BadRequestError(f"Invalid vote direction {value!r}. Must be 'up' or 'down'.") from None


class VoteLedger:
    """Record up/down votes and keep acceptance confidence in step."""

    def __init__(
        self,
        repository: VerificationRepository,
        providers: ProviderRepository,
        *,
        confidence: ConfidenceService | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._repo = repository
        self._providers = providers
        self._confidence = confidence or ConfidenceService()
        self._clock = clock or utcnow

    async def vote(
        self,
        report_id: str,
        direction: VoteDirection | str,
        voter_ip: str | None,
    ) -> VoteResult:
        """Cast or flip a vote on a report.

        Args:
            report_id: Report log entry identifier.
            direction: ``up`` or ``down``.
            voter_ip: Voter network address (required).

        Returns:
            VoteResult with the updated report, whether an existing vote was
            flipped, and the recomputed acceptance record if one is linked.

        Raises:
            BadRequestError: Missing address or unknown direction.
            NotFoundError: Unknown report.
            ConflictError: Same-direction repeat vote.
            StorageError: The database failed; nothing was written.
        """
        if not voter_ip:
            raise BadRequestError("Voter address is required to vote")
        vote_direction = parse_direction(direction)

        start = time.perf_counter()
        metrics = get_metrics()
        now = self._clock()

        try:
            async with self._repo.transaction(
                lock_key=vote_lock_key(report_id, voter_ip)
            ) as tx:
                if await tx.get_report(report_id) is None:
                    raise NotFoundError(f"Verification not found: {report_id}")

                existing = await tx.get_vote(report_id, voter_ip)
                is_up = vote_direction == VoteDirection.UP
                if existing is not None and existing.vote == vote_direction:
                    metrics.record_vote(vote_direction.value, "duplicate")
                    raise ConflictError("You have already voted on this verification")

                if existing is None:
                    await tx.insert_vote(
                        VoteRecord(
                            verification_id=report_id,
                            source_ip=voter_ip,
                            vote=vote_direction,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    up_delta, down_delta = (1, 0) if is_up else (0, 1)
                else:
                    await tx.update_vote_direction(existing.id, vote_direction, now)
                    up_delta, down_delta = (1, -1) if is_up else (-1, 1)

                report = await tx.adjust_report_votes(report_id, up_delta, down_delta)

        except VerificationError:
            raise
        except asyncpg.UniqueViolationError as e:
            metrics.record_vote(vote_direction.value, "duplicate")
            raise ConflictError("You have already voted on this verification") from e
        except asyncpg.PostgresError as e:
            logger.exception("Vote failed for report %s", report_id)
            raise StorageError(f"Failed to record vote: {e}") from e

        vote_changed = existing is not None
        metrics.record_vote(
            vote_direction.value,
            "flipped" if vote_changed else "new",
            latency=time.perf_counter() - start,
        )

        acceptance = await self._recompute_confidence(report, now)
        return VoteResult(report=report, vote_changed=vote_changed, acceptance=acceptance)

    async def _recompute_confidence(
        self,
        report: ReportLogEntry,
        now: datetime,
    ) -> AcceptanceRecord | None:
        """Re-score the report's acceptance record from its updated vote counts."""
        provider = await self._providers.get_provider(report.provider_npi)

        async with self._repo.transaction(
            lock_key=pair_lock_key(report.provider_npi, report.plan_id)
        ) as tx:
            if report.acceptance_id is not None:
                record = await tx.get_acceptance_by_id(report.acceptance_id)
            else:
                record = await tx.get_acceptance(
                    report.provider_npi, report.plan_id, report.location_id
                )
            if record is None or record.id is None:
                return None

            result = self._confidence.calculate(
                ConfidenceInput(
                    data_source=record.verification_source,
                    last_verified_at=record.last_verified,
                    verification_count=record.verification_count,
                    upvotes=report.upvotes,
                    downvotes=report.downvotes,
                    specialty=provider.primary_specialty if provider else None,
                    taxonomy_description=provider.taxonomy_description if provider else None,
                ),
                now=now,
            )
            updated = await tx.update_confidence_score(
                record.id, result.rounded_score, now
            )

        get_metrics().record_confidence(result.score, trigger="vote")
        return updated or record
