"""Consensus engine for crowd-submitted acceptance reports.

``submit_report`` is the write path:

1. Validate the provider and plan exist
2. Take a per-(provider, plan) advisory lock inside one transaction
3. Run the abuse guard
4. Snapshot the existing acceptance record as the report's previous value
5. Insert the report with a TTL
6. Tally live ACCEPTED / NOT_ACCEPTED reports for the key
7. Compute a provisional confidence score
8. Apply the status transition rule
9. Create or update the acceptance record and back-link the report

Any exception rolls the whole sequence back. The read side (pair aggregate,
recent reports, stats) runs without locks.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import asyncpg

from src.confidence.schemas import ConfidenceInput
from src.confidence.service import ConfidenceService
from src.observability.metrics import get_metrics
from src.providers.repository import ProviderRepository
from src.verification.abuse_guard import AbuseGuard, DuplicateSubmissionError
from src.verification.config import VerificationConfig
from src.verification.consensus import determine_acceptance_status
from src.verification.errors import NotFoundError, StorageError, VerificationError
from src.verification.repository import VerificationRepository
from src.verification.schemas import (
    AcceptanceRecord,
    PairAggregate,
    ReportLogEntry,
    ReportSubmission,
    SubmissionResult,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def pair_lock_key(provider_npi: str, plan_id: str) -> str:
    """Advisory lock key serialising submissions for one provider/plan pair."""
    return f"pair:{provider_npi}:{plan_id}"


class VerificationService:
    """Submission, aggregate and statistics operations.

    Usage:
        service = VerificationService(verification_repo, provider_repo)
        result = await service.submit_report(
            ReportSubmission(
                provider_npi="1234567890",
                plan_id="BCBS-PPO-2025",
                acceptance_status=AcceptanceStatus.ACCEPTED,
                source_ip="203.0.113.7",
            )
        )
        result.acceptance.acceptance_status
    """

    def __init__(
        self,
        repository: VerificationRepository,
        providers: ProviderRepository,
        *,
        config: VerificationConfig | None = None,
        confidence: ConfidenceService | None = None,
        abuse_guard: AbuseGuard | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._repo = repository
        self._providers = providers
        self._config = config or VerificationConfig()
        self._confidence = confidence or ConfidenceService()
        self._guard = abuse_guard or AbuseGuard(self._config)
        self._clock = clock or utcnow

    @property
    def ttl(self) -> timedelta:
        return timedelta(days=self._config.ttl_days)

    async def submit_report(self, submission: ReportSubmission) -> SubmissionResult:
        """Record a crowd report and fold it into the acceptance record.

        Raises:
            NotFoundError: Unknown provider or plan.
            ConflictError: Submitter already reported this pair in the window.
            StorageError: The database failed; nothing was written.
        """
        start = time.perf_counter()
        metrics = get_metrics()
        now = self._clock()

        provider = await self._providers.get_provider(submission.provider_npi)
        if provider is None:
            metrics.record_rejection("not_found")
            raise NotFoundError(f"Provider not found: {submission.provider_npi}")
        plan = await self._providers.get_plan(submission.plan_id)
        if plan is None:
            metrics.record_rejection("not_found")
            raise NotFoundError(f"Plan not found: {submission.plan_id}")

        try:
            async with self._repo.transaction(
                lock_key=pair_lock_key(submission.provider_npi, submission.plan_id)
            ) as tx:
                await self._guard.check(
                    tx,
                    submission.provider_npi,
                    submission.plan_id,
                    source_ip=submission.source_ip,
                    submitted_by=submission.submitted_by,
                    now=now,
                )

                existing = await tx.get_acceptance(
                    submission.provider_npi,
                    submission.plan_id,
                    submission.location_id,
                )

                report = await tx.insert_report(
                    ReportLogEntry(
                        provider_npi=submission.provider_npi,
                        plan_id=submission.plan_id,
                        location_id=submission.location_id,
                        acceptance_id=existing.id if existing else None,
                        verification_source=submission.verification_source,
                        previous_value=existing.snapshot() if existing else None,
                        new_value=submission.new_value(),
                        notes=submission.notes,
                        evidence_url=submission.evidence_url,
                        submitted_by=submission.submitted_by,
                        source_ip=submission.source_ip,
                        user_agent=submission.user_agent,
                        created_at=now,
                        expires_at=now + self.ttl,
                    )
                )

                counts = await tx.count_consensus(
                    submission.provider_npi,
                    submission.plan_id,
                    submission.location_id,
                    now,
                )

                confidence = self._confidence.calculate(
                    ConfidenceInput(
                        data_source=submission.verification_source.value,
                        last_verified_at=now,
                        verification_count=counts.total,
                        upvotes=counts.majority,
                        downvotes=counts.minority,
                        specialty=provider.primary_specialty,
                        taxonomy_description=provider.taxonomy_description,
                    ),
                    now=now,
                )

                previous_status = existing.acceptance_status if existing else None
                new_status = determine_acceptance_status(
                    previous_status, counts, confidence.score, self._config
                )

                if existing is None:
                    acceptance = await tx.insert_acceptance(
                        AcceptanceRecord(
                            provider_npi=submission.provider_npi,
                            plan_id=submission.plan_id,
                            location_id=submission.location_id,
                            acceptance_status=new_status,
                            confidence_score=confidence.rounded_score,
                            last_verified=now,
                            verification_count=1,
                            verification_source=submission.verification_source.value,
                            accepts_new_patients=submission.accepts_new_patients,
                            expires_at=now + self.ttl,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                else:
                    existing.acceptance_status = new_status
                    existing.confidence_score = confidence.rounded_score
                    existing.last_verified = now
                    existing.verification_count += 1
                    existing.verification_source = submission.verification_source.value
                    if submission.accepts_new_patients is not None:
                        existing.accepts_new_patients = submission.accepts_new_patients
                    existing.expires_at = now + self.ttl
                    existing.updated_at = now
                    acceptance = await tx.update_acceptance(existing)

                if report.acceptance_id != acceptance.id:
                    await tx.link_report(report.id, acceptance.id)
                    report.acceptance_id = acceptance.id

        except DuplicateSubmissionError as e:
            metrics.record_rejection(e.reason)
            raise
        except VerificationError:
            raise
        except asyncpg.PostgresError as e:
            metrics.record_rejection("storage")
            logger.exception(
                "Report submission failed for %s/%s",
                submission.provider_npi,
                submission.plan_id,
            )
            raise StorageError(f"Failed to record verification: {e}") from e

        status_changed = previous_status is not None and new_status != previous_status
        if status_changed:
            metrics.record_status_transition(previous_status.value, new_status.value)
            logger.info(
                "Acceptance status for %s/%s changed %s -> %s (%d reports, score %.2f)",
                submission.provider_npi,
                submission.plan_id,
                previous_status.value,
                new_status.value,
                counts.total,
                confidence.score,
            )

        metrics.record_confidence(confidence.score, trigger="submission")
        metrics.record_submission(
            submission.verification_source.value,
            latency=time.perf_counter() - start,
        )

        return SubmissionResult(
            report=report,
            acceptance=acceptance,
            confidence=confidence,
            status_changed=status_changed,
        )

    async def get_aggregate_for_pair(
        self,
        provider_npi: str,
        plan_id: str,
        location_id: int | None = None,
        *,
        include_expired: bool = False,
    ) -> PairAggregate:
        """Acceptance record, recent reports and summary counts for one key.

        Raises:
            NotFoundError: Unknown provider or plan.
        """
        now = self._clock()

        provider = await self._providers.get_provider(provider_npi)
        if provider is None:
            raise NotFoundError(f"Provider not found: {provider_npi}")
        plan = await self._providers.get_plan(plan_id)
        if plan is None:
            raise NotFoundError(f"Plan not found: {plan_id}")

        acceptance = await self._repo.get_acceptance(provider_npi, plan_id, location_id)
        reports = await self._repo.list_reports_for_pair(
            provider_npi,
            plan_id,
            location_id,
            now,
            include_expired=include_expired,
            limit=self._config.pair_report_limit,
        )
        summary = await self._repo.pair_summary(
            provider_npi,
            plan_id,
            location_id,
            now,
            include_expired=include_expired,
        )

        return PairAggregate(
            provider=provider,
            plan=plan,
            acceptance=acceptance,
            is_acceptance_expired=acceptance.is_expired(now) if acceptance else False,
            reports=reports,
            summary=summary,
        )

    async def get_recent_reports(
        self,
        *,
        limit: int = 20,
        provider_npi: str | None = None,
        plan_id: str | None = None,
        include_expired: bool = False,
    ) -> list[ReportLogEntry]:
        """Most recent reports across all pairs, newest first."""
        limit = max(1, min(limit, self._config.max_recent_limit))
        return await self._repo.list_recent_reports(
            self._clock(),
            limit=limit,
            provider_npi=provider_npi,
            plan_id=plan_id,
            include_expired=include_expired,
        )

    async def get_stats(self) -> dict[str, Any]:
        return await self._repo.report_stats(self._clock())

    async def get_expiration_stats(self) -> dict[str, dict[str, int]]:
        return await self._repo.expiration_stats(self._clock())
