"""TTL expiry cleanup for report logs and acceptance records.

Counts expired rows first; a dry run stops there. Otherwise deletes expired
reports and then expired acceptance records in ``LIMIT batch_size``
batches, stopping a table once a batch comes back short. Acceptance records
that still have a live report for their key are kept. Rows without a TTL
are never touched.

Re-running with nothing newly expired deletes nothing.

Designed for external cron scheduling: ``30 3 * * * provider-verify cleanup-expired``
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from src.observability.metrics import get_metrics
from src.observability.tracing import get_tracer, traced
from src.storage.database import Database
from src.verification.config import VerificationConfig
from src.verification.decay_job import should_stop
from src.verification.repository import VerificationRepository

logger = logging.getLogger(__name__)


@dataclass
class ExpiryCleanupResult:
    """Summary of an expiry cleanup run."""

    expired_reports: int = 0
    expired_acceptances: int = 0
    deleted_reports: int = 0
    deleted_acceptances: int = 0
    elapsed_seconds: float = 0.0
    cancelled: bool = False
    dry_run: bool = False

    def to_dict(self) -> dict:
        return {
            "expired_reports": self.expired_reports,
            "expired_acceptances": self.expired_acceptances,
            "deleted_reports": self.deleted_reports,
            "deleted_acceptances": self.deleted_acceptances,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "cancelled": self.cancelled,
            "dry_run": self.dry_run,
        }


async def _delete_in_batches(
    delete_batch: Callable[[datetime, int], Awaitable[int]],
    now: datetime,
    batch_size: int,
    stop: Callable[[], bool],
) -> tuple[int, bool]:
    """Run ``delete_batch`` until a short batch. Returns (deleted, stopped_early)."""
    deleted = 0
    while True:
        if stop():
            return deleted, True
        count = await delete_batch(now, batch_size)
        deleted += count
        if count < batch_size:
            return deleted, False


async def run_expiry_cleanup(
    database: Database,
    *,
    dry_run: bool = False,
    batch_size: int | None = None,
    cancel_event: asyncio.Event | None = None,
    deadline_seconds: float | None = None,
    now: datetime | None = None,
    config: VerificationConfig | None = None,
) -> ExpiryCleanupResult:
    """
    Delete expired report logs and acceptance records.

    Args:
        database: Connected Database instance (caller manages lifecycle).
        dry_run: Only count expired rows.
        batch_size: Rows per DELETE (default from config).
        cancel_event: Set to stop between batches with partial results.
        deadline_seconds: Stop between batches once this much time has passed.
        now: Reference time (default: UTC now).
        config: Verification configuration (default: from env).

    Returns:
        ExpiryCleanupResult with expired and deleted counts.
    """
    config = config or VerificationConfig()
    now = now or datetime.now(timezone.utc)
    batch_size = batch_size or config.cleanup_batch_size
    result = ExpiryCleanupResult(dry_run=dry_run)
    start_time = time.monotonic()

    repo = VerificationRepository(database)
    tracer = get_tracer("provider-verify.jobs")

    def stop() -> bool:
        return should_stop(cancel_event, start_time, deadline_seconds)

    with traced(tracer, "cleanup.count"):
        result.expired_reports, result.expired_acceptances = await repo.count_expired(now)

    logger.info(
        "Expired rows: %d reports, %d acceptance records (dry_run=%s)",
        result.expired_reports,
        result.expired_acceptances,
        dry_run,
    )

    if not dry_run:
        with traced(tracer, "cleanup.delete_reports", {"batch_size": batch_size}):
            result.deleted_reports, result.cancelled = await _delete_in_batches(
                repo.delete_expired_reports, now, batch_size, stop
            )

        if not result.cancelled:
            with traced(tracer, "cleanup.delete_acceptances", {"batch_size": batch_size}):
                result.deleted_acceptances, result.cancelled = await _delete_in_batches(
                    repo.delete_expired_acceptances, now, batch_size, stop
                )

    result.elapsed_seconds = time.monotonic() - start_time

    if result.cancelled:
        outcome = "cancelled"
        logger.warning("Expiry cleanup stopped early")
    elif dry_run:
        outcome = "dry_run"
    else:
        outcome = "completed"
    get_metrics().record_batch_job(
        "cleanup",
        outcome,
        result.elapsed_seconds,
        {
            "deleted_reports": result.deleted_reports,
            "deleted_acceptances": result.deleted_acceptances,
        },
    )

    logger.info(
        "Expiry cleanup finished: deleted %d reports, %d acceptance records (%.2fs)",
        result.deleted_reports,
        result.deleted_acceptances,
        result.elapsed_seconds,
    )
    return result
