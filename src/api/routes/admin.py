"""Administrative endpoints for the TTL lifecycle.

Guarded by ``X-Admin-Secret`` rather than API keys; intended for cron
callers such as Cloud Scheduler hitting the service over HTTP.
"""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.auth import verify_admin_secret
from src.api.dependencies import get_database, get_verification_service
from src.api.models import (
    CleanupResponse,
    ErrorResponse,
    ExpirationStatsResponse,
    RecalculateResponse,
    TableExpirationStats,
)
from src.storage.database import Database
from src.verification.cleanup_job import run_expiry_cleanup
from src.verification.decay_job import run_decay_recalculation
from src.verification.service import VerificationService

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/admin", dependencies=[Depends(verify_admin_secret)])

_ADMIN_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Invalid or missing admin secret"},
    503: {"model": ErrorResponse, "description": "Admin secret not configured"},
    500: {"model": ErrorResponse, "description": "Server error"},
}


@router.post(
    "/cleanup-expired",
    response_model=CleanupResponse,
    responses=_ADMIN_RESPONSES,
    summary="Delete expired reports and acceptance records",
)
async def cleanup_expired(
    dry_run: bool = Query(default=False, description="Only count expired rows"),
    batch_size: int = Query(default=1000, ge=1, le=10000, description="Rows per DELETE"),
    db: Database = Depends(get_database),
) -> CleanupResponse:
    try:
        result = await run_expiry_cleanup(db, dry_run=dry_run, batch_size=batch_size)

        if dry_run:
            message = (
                f"Dry run complete. {result.expired_reports} reports and "
                f"{result.expired_acceptances} acceptance records would be deleted."
            )
        else:
            message = (
                f"Cleanup complete. {result.deleted_reports} reports and "
                f"{result.deleted_acceptances} acceptance records deleted."
            )

        logger.info("Admin expiry cleanup", **result.to_dict())

        return CleanupResponse(
            dry_run=result.dry_run,
            expired_reports=result.expired_reports,
            expired_acceptances=result.expired_acceptances,
            deleted_reports=result.deleted_reports,
            deleted_acceptances=result.deleted_acceptances,
            cancelled=result.cancelled,
            elapsed_seconds=round(result.elapsed_seconds, 3),
            message=message,
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error("cleanup_expired_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clean up expired records",
        )


@router.post(
    "/recalculate-confidence",
    response_model=RecalculateResponse,
    responses=_ADMIN_RESPONSES,
    summary="Recompute confidence scores with time decay",
)
async def recalculate_confidence(
    dry_run: bool = Query(default=False, description="Compute without writing"),
    limit: int | None = Query(default=None, ge=1, description="Max records to process"),
    batch_size: int = Query(default=100, ge=1, le=1000, description="Records per page"),
    db: Database = Depends(get_database),
) -> RecalculateResponse:
    try:
        result = await run_decay_recalculation(
            db,
            dry_run=dry_run,
            limit=limit,
            batch_size=batch_size,
        )

        verb = "would be updated" if dry_run else "updated"
        message = (
            f"{'Dry run' if dry_run else 'Recalculation'} complete. "
            f"{result.processed} records processed, {result.updated} {verb}, "
            f"{result.unchanged} unchanged, {result.errors} errors."
        )

        logger.info("Admin confidence recalculation", **result.to_dict())

        return RecalculateResponse(
            dry_run=result.dry_run,
            processed=result.processed,
            updated=result.updated,
            unchanged=result.unchanged,
            errors=result.errors,
            cancelled=result.cancelled,
            elapsed_seconds=round(result.elapsed_seconds, 3),
            message=message,
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error("recalculate_confidence_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to recalculate confidence scores",
        )


@router.get(
    "/expiration-stats",
    response_model=ExpirationStatsResponse,
    responses=_ADMIN_RESPONSES,
    summary="TTL breakdown per table",
)
async def expiration_stats(
    service: VerificationService = Depends(get_verification_service),
) -> ExpirationStatsResponse:
    start_time = time.perf_counter()

    try:
        stats = await service.get_expiration_stats()
        latency_ms = (time.perf_counter() - start_time) * 1000

        return ExpirationStatsResponse(
            verification_logs=TableExpirationStats(**stats["verification_logs"]),
            provider_plan_acceptance=TableExpirationStats(**stats["provider_plan_acceptance"]),
            latency_ms=round(latency_ms, 2),
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error("expiration_stats_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get expiration stats",
        )
