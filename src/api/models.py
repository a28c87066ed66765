"""
Request and response models for the verification API.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        default="error",
        description="Error type",
    )


# Verification models


class VerifyRequest(BaseModel):
    """Request model for submitting a plan acceptance report."""

    npi: str = Field(
        ...,
        pattern=r"^\d{10}$",
        description="10-digit provider NPI",
    )
    plan_id: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Insurance plan identifier",
    )
    location_id: int | None = Field(
        default=None,
        ge=1,
        description="Optional practice location the report applies to",
    )
    accepts_insurance: bool = Field(
        ...,
        description="Whether the provider accepts this plan",
    )
    accepts_new_patients: bool | None = Field(
        default=None,
        description="Whether the provider is taking new patients on this plan",
    )
    phone_reached: bool | None = None
    phone_correct: bool | None = None
    scheduled_appointment: bool | None = None
    notes: str | None = Field(
        default=None,
        max_length=1000,
        description="Free-text note",
    )
    evidence_url: str | None = Field(
        default=None,
        max_length=500,
        description="Link to supporting evidence",
    )
    submitted_by: str | None = Field(
        default=None,
        max_length=200,
        description="Submitter email (optional, never returned)",
    )


class ReportItem(BaseModel):
    """A verification report with submitter fields removed."""

    id: str
    provider_npi: str
    plan_id: str
    location_id: int | None = None
    acceptance_id: int | None = None
    verification_type: str
    verification_source: str
    previous_value: dict[str, Any] | None = None
    new_value: dict[str, Any]
    notes: str | None = None
    evidence_url: str | None = None
    upvotes: int = 0
    downvotes: int = 0
    net_votes: int = 0
    created_at: str
    expires_at: str | None = None


class AcceptanceItem(BaseModel):
    """Published acceptance record with its confidence presentation."""

    id: int | None = None
    provider_npi: str
    plan_id: str
    location_id: int | None = None
    acceptance_status: str
    confidence_score: int = Field(..., ge=0, le=100)
    confidence_level: str
    confidence_description: str
    last_verified: str | None = None
    verification_count: int = 0
    accepts_new_patients: bool | None = None
    expires_at: str | None = None


class VerifyResponse(BaseModel):
    """Response model for a submitted report."""

    report: ReportItem
    acceptance: AcceptanceItem
    status_changed: bool = False
    message: str
    latency_ms: float


class VoteRequest(BaseModel):
    """Request model for voting on a report."""

    vote: str = Field(
        ...,
        description="Vote direction: up or down",
    )


class VoteResponse(BaseModel):
    """Response model for a recorded vote."""

    report_id: str
    upvotes: int
    downvotes: int
    net_votes: int
    vote_changed: bool
    confidence_score: int | None = None
    message: str
    latency_ms: float


class PairSummaryItem(BaseModel):
    total_reports: int = 0
    accepted: int = 0
    not_accepted: int = 0
    upvotes: int = 0
    downvotes: int = 0


class PairResponse(BaseModel):
    """Response model for a provider/plan aggregate."""

    npi: str
    provider_name: str
    plan_id: str
    plan_name: str
    acceptance: AcceptanceItem | None = None
    is_acceptance_expired: bool = False
    reports: list[ReportItem] = Field(default_factory=list)
    summary: PairSummaryItem
    latency_ms: float


class RecentReportsResponse(BaseModel):
    reports: list[ReportItem] = Field(default_factory=list)
    total: int
    latency_ms: float


class VerificationStatsResponse(BaseModel):
    """Response model for verification statistics."""

    total: int
    recent_24h: int
    by_type: dict[str, int] = Field(default_factory=dict)
    by_source: dict[str, int] = Field(default_factory=dict)
    latency_ms: float


# Admin models


class CleanupResponse(BaseModel):
    """Response model for expiry cleanup."""

    dry_run: bool
    expired_reports: int
    expired_acceptances: int
    deleted_reports: int
    deleted_acceptances: int
    cancelled: bool = False
    elapsed_seconds: float
    message: str


class RecalculateResponse(BaseModel):
    """Response model for confidence decay recalculation."""

    dry_run: bool
    processed: int
    updated: int
    unchanged: int
    errors: int
    cancelled: bool = False
    elapsed_seconds: float
    message: str


class TableExpirationStats(BaseModel):
    total: int
    with_ttl: int
    expired: int
    expiring_within_7_days: int
    expiring_within_30_days: int


class ExpirationStatsResponse(BaseModel):
    verification_logs: TableExpirationStats
    provider_plan_acceptance: TableExpirationStats
    latency_ms: float


# Health models


class ComponentHealth(BaseModel):
    """Health status of an infrastructure component."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy or unhealthy",
    )
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    version: str
