"""Schema definitions for crowd verification.

Maps to the ``provider_plan_acceptance``, ``verification_logs`` and
``vote_logs`` tables. Report payloads are tagged by ``VerificationType``:
each kind has a concrete value class, and unknown payload keys are ignored
when reading so older rows and newer writers stay compatible.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

from src.confidence.schemas import ConfidenceResult
from src.providers.schemas import InsurancePlan, Provider


class AcceptanceStatus(str, Enum):
    """Published acceptance status of a provider/plan relationship."""

    ACCEPTED = "ACCEPTED"
    NOT_ACCEPTED = "NOT_ACCEPTED"
    PENDING = "PENDING"
    UNKNOWN = "UNKNOWN"


CLAIMABLE_STATUSES: frozenset[AcceptanceStatus] = frozenset({
    AcceptanceStatus.ACCEPTED,
    AcceptanceStatus.NOT_ACCEPTED,
})


class VerificationType(str, Enum):
    """Kind of report; selects the payload variant."""

    PLAN_ACCEPTANCE = "PLAN_ACCEPTANCE"


class VerificationSource(str, Enum):
    """Channel a report arrived through."""

    CMS_DATA = "CMS_DATA"
    CARRIER_DATA = "CARRIER_DATA"
    PROVIDER_PORTAL = "PROVIDER_PORTAL"
    PHONE_CALL = "PHONE_CALL"
    CROWDSOURCE = "CROWDSOURCE"
    AUTOMATED = "AUTOMATED"


class VoteDirection(str, Enum):
    UP = "up"
    DOWN = "down"


# ── Report payloads ─────────────────────────────────────


@dataclass
class PlanAcceptanceValue:
    """New-value payload of a PLAN_ACCEPTANCE report."""

    kind: ClassVar[VerificationType] = VerificationType.PLAN_ACCEPTANCE

    acceptance_status: AcceptanceStatus
    accepts_new_patients: bool | None = None
    phone_reached: bool | None = None
    phone_correct: bool | None = None
    scheduled_appointment: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"acceptance_status": self.acceptance_status.value}
        for name in (
            "accepts_new_patients",
            "phone_reached",
            "phone_correct",
            "scheduled_appointment",
        ):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlanAcceptanceValue":
        return cls(
            acceptance_status=AcceptanceStatus(data["acceptance_status"]),
            accepts_new_patients=data.get("accepts_new_patients"),
            phone_reached=data.get("phone_reached"),
            phone_correct=data.get("phone_correct"),
            scheduled_appointment=data.get("scheduled_appointment"),
        )


@dataclass
class AcceptanceSnapshot:
    """Previous-value snapshot of the acceptance record a report replaced."""

    acceptance_status: AcceptanceStatus
    confidence_score: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "acceptance_status": self.acceptance_status.value,
            "confidence_score": self.confidence_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AcceptanceSnapshot":
        return cls(
            acceptance_status=AcceptanceStatus(data["acceptance_status"]),
            confidence_score=int(data.get("confidence_score", 0)),
        )


_VALUE_TYPES: dict[VerificationType, type[PlanAcceptanceValue]] = {
    VerificationType.PLAN_ACCEPTANCE: PlanAcceptanceValue,
}


def parse_report_value(
    kind: VerificationType,
    data: dict[str, Any] | None,
) -> PlanAcceptanceValue | None:
    """Decode a stored new-value payload into the variant for ``kind``."""
    if not data:
        return None
    return _VALUE_TYPES[kind].from_dict(data)


# ── Records ─────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_live(expires_at: datetime | None, now: datetime) -> bool:
    """Rows without a TTL predate expiry tracking and count as live."""
    return expires_at is None or expires_at > now


@dataclass
class AcceptanceRecord:
    """Published status of one provider/plan[/location] relationship.

    Attributes:
        provider_npi: Provider NPI.
        plan_id: Insurance plan identifier.
        location_id: Optional practice location scope.
        id: Database identifier (None until inserted).
        acceptance_status: Published status.
        confidence_score: Integer score 0-100.
        last_verified: Time of the most recent report.
        verification_count: Reports applied to this record.
        verification_source: Channel of the most recent report.
        accepts_new_patients: Latest reported new-patient flag.
        expires_at: TTL; refreshed on every report.
    """

    provider_npi: str
    plan_id: str
    location_id: int | None = None
    id: int | None = None
    acceptance_status: AcceptanceStatus = AcceptanceStatus.PENDING
    confidence_score: int = 0
    last_verified: datetime | None = None
    verification_count: int = 0
    verification_source: str | None = None
    accepts_new_patients: bool | None = None
    expires_at: datetime | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not (0 <= self.confidence_score <= 100):
            raise ValueError(
                f"Invalid confidence_score {self.confidence_score}. Must be between 0 and 100."
            )
        if self.verification_count < 0:
            raise ValueError("verification_count must be >= 0")

    def is_expired(self, now: datetime) -> bool:
        return not is_live(self.expires_at, now)

    def snapshot(self) -> AcceptanceSnapshot:
        return AcceptanceSnapshot(
            acceptance_status=self.acceptance_status,
            confidence_score=self.confidence_score,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider_npi": self.provider_npi,
            "plan_id": self.plan_id,
            "location_id": self.location_id,
            "acceptance_status": self.acceptance_status.value,
            "confidence_score": self.confidence_score,
            "last_verified": self.last_verified.isoformat() if self.last_verified else None,
            "verification_count": self.verification_count,
            "verification_source": self.verification_source,
            "accepts_new_patients": self.accepts_new_patients,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


# Submitter fields that never leave the service boundary
PII_FIELDS: frozenset[str] = frozenset({"source_ip", "user_agent", "submitted_by"})


@dataclass
class ReportLogEntry:
    """One crowd submission.

    Append-only except for the vote counters. ``source_ip``,
    ``submitted_by`` and ``user_agent`` are written once at insert.
    """

    provider_npi: str
    plan_id: str
    new_value: PlanAcceptanceValue
    id: str = field(default_factory=lambda: f"verif_{uuid.uuid4().hex[:12]}")
    location_id: int | None = None
    acceptance_id: int | None = None
    verification_type: VerificationType = VerificationType.PLAN_ACCEPTANCE
    verification_source: VerificationSource = VerificationSource.CROWDSOURCE
    previous_value: AcceptanceSnapshot | None = None
    notes: str | None = None
    evidence_url: str | None = None
    submitted_by: str | None = None
    source_ip: str | None = None
    user_agent: str | None = None
    upvotes: int = 0
    downvotes: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    expires_at: datetime | None = None

    @property
    def net_votes(self) -> int:
        return self.upvotes - self.downvotes

    @property
    def claimed_status(self) -> AcceptanceStatus:
        return self.new_value.acceptance_status

    def is_expired(self, now: datetime) -> bool:
        return not is_live(self.expires_at, now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider_npi": self.provider_npi,
            "plan_id": self.plan_id,
            "location_id": self.location_id,
            "acceptance_id": self.acceptance_id,
            "verification_type": self.verification_type.value,
            "verification_source": self.verification_source.value,
            "previous_value": self.previous_value.to_dict() if self.previous_value else None,
            "new_value": self.new_value.to_dict(),
            "notes": self.notes,
            "evidence_url": self.evidence_url,
            "submitted_by": self.submitted_by,
            "source_ip": self.source_ip,
            "user_agent": self.user_agent,
            "upvotes": self.upvotes,
            "downvotes": self.downvotes,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize without submitter address, identity or user agent."""
        return {k: v for k, v in self.to_dict().items() if k not in PII_FIELDS}


@dataclass
class VoteRecord:
    """Deduplication record: one per (report, voter address)."""

    verification_id: str
    source_ip: str
    vote: VoteDirection
    id: str = field(default_factory=lambda: f"vote_{uuid.uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


# ── Operation inputs and results ────────────────────────


@dataclass
class ReportSubmission:
    """Input to ``VerificationService.submit_report``."""

    provider_npi: str
    plan_id: str
    acceptance_status: AcceptanceStatus
    location_id: int | None = None
    verification_source: VerificationSource = VerificationSource.CROWDSOURCE
    accepts_new_patients: bool | None = None
    phone_reached: bool | None = None
    phone_correct: bool | None = None
    scheduled_appointment: bool | None = None
    notes: str | None = None
    evidence_url: str | None = None
    submitted_by: str | None = None
    source_ip: str | None = None
    user_agent: str | None = None

    def __post_init__(self) -> None:
        if not (len(self.provider_npi) == 10 and self.provider_npi.isdigit()):
            raise ValueError(f"Invalid NPI {self.provider_npi!r}. Must be 10 digits.")
        if not self.plan_id:
            raise ValueError("plan_id must be non-empty")
        self.acceptance_status = AcceptanceStatus(self.acceptance_status)
        if self.acceptance_status not in CLAIMABLE_STATUSES:
            raise ValueError(
                f"Invalid acceptance_status {self.acceptance_status.value!r}. "
                f"Must be one of: {sorted(s.value for s in CLAIMABLE_STATUSES)}"
            )
        self.verification_source = VerificationSource(self.verification_source)

    def new_value(self) -> PlanAcceptanceValue:
        return PlanAcceptanceValue(
            acceptance_status=self.acceptance_status,
            accepts_new_patients=self.accepts_new_patients,
            phone_reached=self.phone_reached,
            phone_correct=self.phone_correct,
            scheduled_appointment=self.scheduled_appointment,
        )


@dataclass
class ConsensusCounts:
    """ACCEPTED vs NOT_ACCEPTED tallies over the live reports of one key."""

    accepted: int = 0
    not_accepted: int = 0

    @property
    def total(self) -> int:
        return self.accepted + self.not_accepted

    @property
    def majority(self) -> int:
        return max(self.accepted, self.not_accepted)

    @property
    def minority(self) -> int:
        return min(self.accepted, self.not_accepted)

    @property
    def majority_status(self) -> AcceptanceStatus:
        if self.accepted >= self.not_accepted:
            return AcceptanceStatus.ACCEPTED
        return AcceptanceStatus.NOT_ACCEPTED


@dataclass
class SubmissionResult:
    report: ReportLogEntry
    acceptance: AcceptanceRecord
    confidence: ConfidenceResult
    status_changed: bool = False


@dataclass
class VoteResult:
    report: ReportLogEntry
    vote_changed: bool
    acceptance: AcceptanceRecord | None = None


@dataclass
class PairSummary:
    total_reports: int = 0
    accepted: int = 0
    not_accepted: int = 0
    upvotes: int = 0
    downvotes: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_reports": self.total_reports,
            "accepted": self.accepted,
            "not_accepted": self.not_accepted,
            "upvotes": self.upvotes,
            "downvotes": self.downvotes,
        }


@dataclass
class PairAggregate:
    """Read model for one provider/plan[/location] key."""

    provider: Provider
    plan: InsurancePlan
    acceptance: AcceptanceRecord | None
    is_acceptance_expired: bool
    reports: list[ReportLogEntry] = field(default_factory=list)
    summary: PairSummary = field(default_factory=PairSummary)


@dataclass
class DecayCandidate:
    """Acceptance record joined with the provider text used for thresholds."""

    record: AcceptanceRecord
    primary_specialty: str | None = None
    taxonomy_description: str | None = None
