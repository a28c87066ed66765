"""Verification endpoints: submit reports, vote, and read aggregates.

Submitter address, identity and user agent are captured from the request
and never returned; every report leaves through ``to_public_dict``.
"""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.api.auth import verify_api_key
from src.api.dependencies import (
    get_confidence_service,
    get_verification_service,
    get_vote_ledger,
)
from src.api.models import (
    AcceptanceItem,
    ErrorResponse,
    PairResponse,
    PairSummaryItem,
    RecentReportsResponse,
    ReportItem,
    VerificationStatsResponse,
    VerifyRequest,
    VerifyResponse,
    VoteRequest,
    VoteResponse,
)
from src.api.rate_limit import get_client_ip, limiter
from src.config.settings import get_settings
from src.confidence.service import ConfidenceService
from src.verification.errors import VerificationError
from src.verification.schemas import (
    AcceptanceRecord,
    AcceptanceStatus,
    ReportLogEntry,
    ReportSubmission,
    VerificationSource,
)
from src.verification.service import VerificationService
from src.verification.votes import VoteLedger

logger = structlog.get_logger(__name__)
router = APIRouter()
settings = get_settings()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Bad request"},
    401: {"model": ErrorResponse, "description": "Invalid API key"},
    404: {"model": ErrorResponse, "description": "Provider, plan or report not found"},
    409: {"model": ErrorResponse, "description": "Duplicate submission or vote"},
    500: {"model": ErrorResponse, "description": "Server error"},
}


def _report_item(report: ReportLogEntry) -> ReportItem:
    return ReportItem(**report.to_public_dict(), net_votes=report.net_votes)


def _acceptance_item(
    record: AcceptanceRecord,
    confidence: ConfidenceService,
) -> AcceptanceItem:
    level = confidence.confidence_level(record.confidence_score, record.verification_count)
    return AcceptanceItem(
        id=record.id,
        provider_npi=record.provider_npi,
        plan_id=record.plan_id,
        location_id=record.location_id,
        acceptance_status=record.acceptance_status.value,
        confidence_score=record.confidence_score,
        confidence_level=level.value,
        confidence_description=confidence.level_description(level, record.verification_count),
        last_verified=record.last_verified.isoformat() if record.last_verified else None,
        verification_count=record.verification_count,
        accepts_new_patients=record.accepts_new_patients,
        expires_at=record.expires_at.isoformat() if record.expires_at else None,
    )


# ── POST /verify ────────────────────────────────────────


@router.post(
    "/verify",
    response_model=VerifyResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERROR_RESPONSES,
    summary="Submit a plan acceptance report",
    description=(
        "Report whether a provider accepts an insurance plan. A single report "
        "never publishes ACCEPTED or NOT_ACCEPTED on its own; the status changes "
        "only once enough consistent reports agree."
    ),
)
@limiter.limit(lambda: settings.rate_limit_verify)
async def submit_verification(
    request: Request,
    body: VerifyRequest,
    api_key: str = Depends(verify_api_key),
    service: VerificationService = Depends(get_verification_service),
    confidence: ConfidenceService = Depends(get_confidence_service),
) -> VerifyResponse:
    start_time = time.perf_counter()

    try:
        submission = ReportSubmission(
            provider_npi=body.npi,
            plan_id=body.plan_id,
            location_id=body.location_id,
            acceptance_status=(
                AcceptanceStatus.ACCEPTED
                if body.accepts_insurance
                else AcceptanceStatus.NOT_ACCEPTED
            ),
            verification_source=VerificationSource.CROWDSOURCE,
            accepts_new_patients=body.accepts_new_patients,
            phone_reached=body.phone_reached,
            phone_correct=body.phone_correct,
            scheduled_appointment=body.scheduled_appointment,
            notes=body.notes,
            evidence_url=body.evidence_url,
            submitted_by=body.submitted_by,
            source_ip=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )

        result = await service.submit_report(submission)

        latency_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "Verification submitted",
            report_id=result.report.id,
            npi=body.npi,
            plan_id=body.plan_id,
            acceptance_status=result.acceptance.acceptance_status.value,
            status_changed=result.status_changed,
            latency_ms=round(latency_ms, 2),
        )

        return VerifyResponse(
            report=_report_item(result.report),
            acceptance=_acceptance_item(result.acceptance, confidence),
            status_changed=result.status_changed,
            message="Verification submitted successfully",
            latency_ms=round(latency_ms, 2),
        )

    except (HTTPException, VerificationError):
        raise
    except Exception as e:
        logger.error("submit_verification_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit verification",
        )


# ── POST /verify/{report_id}/vote ───────────────────────


@router.post(
    "/verify/{report_id}/vote",
    response_model=VoteResponse,
    responses=_ERROR_RESPONSES,
    summary="Vote on a report",
    description=(
        "Up- or down-vote a report. One vote per address; voting the other "
        "way flips the existing vote."
    ),
)
@limiter.limit(lambda: settings.rate_limit_vote)
async def vote_on_verification(
    request: Request,
    report_id: str,
    body: VoteRequest,
    api_key: str = Depends(verify_api_key),
    ledger: VoteLedger = Depends(get_vote_ledger),
) -> VoteResponse:
    start_time = time.perf_counter()

    try:
        result = await ledger.vote(report_id, body.vote, get_client_ip(request))

        latency_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "Vote recorded",
            report_id=report_id,
            vote=body.vote,
            vote_changed=result.vote_changed,
            latency_ms=round(latency_ms, 2),
        )

        return VoteResponse(
            report_id=result.report.id,
            upvotes=result.report.upvotes,
            downvotes=result.report.downvotes,
            net_votes=result.report.net_votes,
            vote_changed=result.vote_changed,
            confidence_score=result.acceptance.confidence_score if result.acceptance else None,
            message="Vote changed successfully" if result.vote_changed else "Vote recorded successfully",
            latency_ms=round(latency_ms, 2),
        )

    except (HTTPException, VerificationError):
        raise
    except Exception as e:
        logger.error("vote_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record vote",
        )


# ── GET /verify/stats ───────────────────────────────────


@router.get(
    "/verify/stats",
    response_model=VerificationStatsResponse,
    responses=_ERROR_RESPONSES,
    summary="Verification statistics",
)
async def get_verification_stats(
    api_key: str = Depends(verify_api_key),
    service: VerificationService = Depends(get_verification_service),
) -> VerificationStatsResponse:
    start_time = time.perf_counter()

    try:
        stats = await service.get_stats()
        latency_ms = (time.perf_counter() - start_time) * 1000

        return VerificationStatsResponse(
            total=stats["total"],
            recent_24h=stats["recent_24h"],
            by_type=stats["by_type"],
            by_source=stats["by_source"],
            latency_ms=round(latency_ms, 2),
        )

    except (HTTPException, VerificationError):
        raise
    except Exception as e:
        logger.error("get_verification_stats_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get verification stats",
        )


# ── GET /verify/recent ──────────────────────────────────


@router.get(
    "/verify/recent",
    response_model=RecentReportsResponse,
    responses=_ERROR_RESPONSES,
    summary="Recent reports",
)
async def get_recent_verifications(
    limit: int = Query(default=20, ge=1, le=100, description="Max reports to return"),
    npi: str | None = Query(default=None, pattern=r"^\d{10}$"),
    plan_id: str | None = Query(default=None, max_length=50),
    include_expired: bool = Query(default=False),
    api_key: str = Depends(verify_api_key),
    service: VerificationService = Depends(get_verification_service),
) -> RecentReportsResponse:
    start_time = time.perf_counter()

    try:
        reports = await service.get_recent_reports(
            limit=limit,
            provider_npi=npi,
            plan_id=plan_id,
            include_expired=include_expired,
        )
        latency_ms = (time.perf_counter() - start_time) * 1000

        return RecentReportsResponse(
            reports=[_report_item(r) for r in reports],
            total=len(reports),
            latency_ms=round(latency_ms, 2),
        )

    except (HTTPException, VerificationError):
        raise
    except Exception as e:
        logger.error("get_recent_verifications_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get recent verifications",
        )


# ── GET /verify/{npi}/{plan_id} ─────────────────────────


@router.get(
    "/verify/{npi}/{plan_id}",
    response_model=PairResponse,
    responses=_ERROR_RESPONSES,
    summary="Provider/plan aggregate",
    description="Acceptance record, recent reports and summary counts for one pair.",
)
async def get_pair_verifications(
    npi: str,
    plan_id: str,
    location_id: int | None = Query(default=None, ge=1),
    include_expired: bool = Query(default=False),
    api_key: str = Depends(verify_api_key),
    service: VerificationService = Depends(get_verification_service),
    confidence: ConfidenceService = Depends(get_confidence_service),
) -> PairResponse:
    start_time = time.perf_counter()

    try:
        aggregate = await service.get_aggregate_for_pair(
            npi,
            plan_id,
            location_id,
            include_expired=include_expired,
        )
        latency_ms = (time.perf_counter() - start_time) * 1000

        return PairResponse(
            npi=aggregate.provider.npi,
            provider_name=aggregate.provider.name,
            plan_id=aggregate.plan.plan_id,
            plan_name=aggregate.plan.plan_name,
            acceptance=(
                _acceptance_item(aggregate.acceptance, confidence)
                if aggregate.acceptance
                else None
            ),
            is_acceptance_expired=aggregate.is_acceptance_expired,
            reports=[_report_item(r) for r in aggregate.reports],
            summary=PairSummaryItem(**aggregate.summary.to_dict()),
            latency_ms=round(latency_ms, 2),
        )

    except (HTTPException, VerificationError):
        raise
    except Exception as e:
        logger.error("get_pair_verifications_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get pair verifications",
        )
