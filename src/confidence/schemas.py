"""Schema definitions for confidence scoring inputs and results."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ConfidenceLevel(str, Enum):
    """Qualitative confidence bands shown next to the numeric score."""

    VERY_HIGH = "VERY_HIGH"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    VERY_LOW = "VERY_LOW"


class SpecialtyCategory(str, Enum):
    """Provider churn categories, each with its own freshness threshold."""

    MENTAL_HEALTH = "MENTAL_HEALTH"
    PRIMARY_CARE = "PRIMARY_CARE"
    SPECIALIST = "SPECIALIST"
    HOSPITAL_BASED = "HOSPITAL_BASED"


@dataclass
class ConfidenceInput:
    """Inputs to the confidence formula.

    Attributes:
        data_source: Source identifier (e.g. ``CMS_DATA``, ``CROWDSOURCE``).
        last_verified_at: When the relationship was last verified.
        verification_count: Number of verifications backing the record.
        upvotes: Agreeing votes (or majority report count).
        downvotes: Disagreeing votes (or minority report count).
        specialty: Free-text provider specialty.
        taxonomy_description: Free-text taxonomy description.
    """

    data_source: str | None = None
    last_verified_at: datetime | None = None
    verification_count: int = 0
    upvotes: int = 0
    downvotes: int = 0
    specialty: str | None = None
    taxonomy_description: str | None = None

    def __post_init__(self) -> None:
        for name in ("verification_count", "upvotes", "downvotes"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")


@dataclass
class ConfidenceFactors:
    """Per-factor contributions to the composite score."""

    data_source_score: float = 0.0
    recency_score: float = 0.0
    verification_score: float = 0.0
    agreement_score: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.data_source_score
            + self.recency_score
            + self.verification_score
            + self.agreement_score
        )


@dataclass
class ConfidenceMetadata:
    """Staleness and explanation data returned alongside a score."""

    days_until_stale: int
    is_stale: bool
    recommend_reverification: bool
    days_since_verification: int | None
    freshness_threshold: int
    specialty_category: SpecialtyCategory
    research_note: str = ""
    explanation: str = ""


@dataclass
class ConfidenceResult:
    """Output of the confidence formula."""

    score: float
    level: ConfidenceLevel
    description: str
    factors: ConfidenceFactors = field(default_factory=ConfidenceFactors)
    metadata: ConfidenceMetadata | None = None

    @property
    def rounded_score(self) -> int:
        """Integer score as persisted on acceptance records."""
        return int(round(self.score))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["level"] = self.level.value
        if self.metadata is not None:
            data["metadata"]["specialty_category"] = self.metadata.specialty_category.value
        return data
