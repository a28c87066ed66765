"""Proactive confidence decay recalculation.

Confidence decays with time since last verification, but stored scores only
change when something writes them. This batch job walks every acceptance
record with at least one verification and rewrites the score when the
formula now gives a different rounded value:

1. Keyset-paginate acceptance records by ascending id
2. Sum up/down votes across the key's live reports
3. Re-run the confidence formula with the provider's specialty threshold
4. Write back only when the rounded score changed (skipped on dry runs)

Per-record failures are logged and counted without aborting the run.
Cancellation and the optional deadline are checked between pages.

Designed for external cron scheduling: ``0 3 * * * provider-verify recalculate-confidence``
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.confidence.schemas import ConfidenceInput
from src.confidence.service import ConfidenceService
from src.observability.metrics import get_metrics
from src.observability.tracing import get_tracer, traced
from src.storage.database import Database
from src.verification.config import VerificationConfig
from src.verification.repository import VerificationRepository

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class DecayRecalculationResult:
    """Summary of a decay recalculation run."""

    processed: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0
    error_messages: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    cancelled: bool = False
    dry_run: bool = False

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "errors": self.errors,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "cancelled": self.cancelled,
            "dry_run": self.dry_run,
        }


def should_stop(
    cancel_event: asyncio.Event | None,
    started: float,
    deadline_seconds: float | None,
) -> bool:
    """True when the run was cancelled or has used up its time budget."""
    if cancel_event is not None and cancel_event.is_set():
        return True
    return deadline_seconds is not None and time.monotonic() - started >= deadline_seconds


async def run_decay_recalculation(
    database: Database,
    *,
    dry_run: bool = False,
    limit: int | None = None,
    batch_size: int | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_event: asyncio.Event | None = None,
    deadline_seconds: float | None = None,
    now: datetime | None = None,
    config: VerificationConfig | None = None,
    confidence: ConfidenceService | None = None,
) -> DecayRecalculationResult:
    """
    Recompute stored confidence scores for all verified acceptance records.

    Args:
        database: Connected Database instance (caller manages lifecycle).
        dry_run: Compute and count changes without writing.
        limit: Stop after this many records.
        batch_size: Records per page (default from config).
        on_progress: Called with (processed, updated) after each page.
        cancel_event: Set to stop between pages with partial results.
        deadline_seconds: Stop between pages once this much time has passed.
        now: Reference time (default: UTC now).
        config: Verification configuration (default: from env).
        confidence: Confidence service (default: from env).

    Returns:
        DecayRecalculationResult with counts and timing.
    """
    config = config or VerificationConfig()
    confidence = confidence or ConfidenceService()
    now = now or datetime.now(timezone.utc)
    batch_size = batch_size or config.decay_batch_size
    result = DecayRecalculationResult(dry_run=dry_run)
    start_time = time.monotonic()

    repo = VerificationRepository(database)
    tracer = get_tracer("provider-verify.jobs")
    cursor = 0

    logger.info(
        "Starting confidence decay recalculation (dry_run=%s, batch_size=%d, limit=%s)",
        dry_run,
        batch_size,
        limit,
    )

    while True:
        if should_stop(cancel_event, start_time, deadline_seconds):
            result.cancelled = True
            logger.warning("Decay recalculation stopped early after %d records", result.processed)
            break

        page_size = batch_size
        if limit is not None:
            page_size = min(batch_size, limit - result.processed)
            if page_size <= 0:
                break

        try:
            batch = await repo.fetch_decay_batch(cursor, page_size)
        except Exception as e:
            logger.exception("Failed to fetch decay batch after id %d", cursor)
            result.errors += 1
            result.error_messages.append(f"fetch_batch:{cursor}: {e}")
            break

        if not batch:
            break

        with traced(tracer, "decay.batch", {"cursor": cursor, "size": len(batch)}):
            for candidate in batch:
                record = candidate.record
                try:
                    upvotes, downvotes = await repo.sum_votes(
                        record.provider_npi, record.plan_id, record.location_id, now
                    )
                    scored = confidence.calculate(
                        ConfidenceInput(
                            data_source=record.verification_source,
                            last_verified_at=record.last_verified,
                            verification_count=record.verification_count,
                            upvotes=upvotes,
                            downvotes=downvotes,
                            specialty=candidate.primary_specialty,
                            taxonomy_description=candidate.taxonomy_description,
                        ),
                        now=now,
                    )

                    new_score = scored.rounded_score
                    if new_score != record.confidence_score:
                        if not dry_run:
                            await repo.update_confidence_score(record.id, new_score, now)
                        result.updated += 1
                    else:
                        result.unchanged += 1
                except Exception as e:
                    logger.error("Failed to recalculate acceptance %s: %s", record.id, e)
                    result.errors += 1
                    result.error_messages.append(f"acceptance:{record.id}: {e}")
                result.processed += 1

        cursor = batch[-1].record.id
        if on_progress is not None:
            on_progress(result.processed, result.updated)

        if len(batch) < page_size:
            break

    result.elapsed_seconds = time.monotonic() - start_time

    if result.cancelled:
        outcome = "cancelled"
    elif dry_run:
        outcome = "dry_run"
    else:
        outcome = "completed"
    get_metrics().record_batch_job(
        "decay",
        outcome,
        result.elapsed_seconds,
        {
            "updated": 0 if dry_run else result.updated,
            "unchanged": result.unchanged,
            "error": result.errors,
        },
    )

    logger.info(
        "Decay recalculation finished: processed=%d updated=%d unchanged=%d errors=%d (%.2fs)",
        result.processed,
        result.updated,
        result.unchanged,
        result.errors,
        result.elapsed_seconds,
    )
    return result
