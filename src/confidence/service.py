"""Confidence scoring for provider plan acceptance.

Computes a 0-100 score from four independently capped factors:
- Data source (max 30): authority of the channel the data came from
- Recency (max 25): full inside the specialty freshness window, linear decay
  to zero across the following window, zero after that
- Verification count (max 25): step function peaking at the minimum
  verification threshold with small credit beyond it
- Agreement (max 20): up/down vote ratio band, scaled by an engagement
  multiplier so a handful of votes cannot look like broad consensus

The score is clamped to [0, 100]. The qualitative level is capped at MEDIUM
while a record has fewer than the minimum number of verifications.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from src.confidence.config import ConfidenceConfig
from src.confidence.schemas import (
    ConfidenceFactors,
    ConfidenceInput,
    ConfidenceLevel,
    ConfidenceMetadata,
    ConfidenceResult,
    SpecialtyCategory,
)
from src.confidence.specialty import classify_specialty, freshness_threshold_days

logger = logging.getLogger(__name__)

MAX_DATA_SOURCE_SCORE = 30
MAX_RECENCY_SCORE = 25
MAX_VERIFICATION_SCORE = 25
MAX_AGREEMENT_SCORE = 20

DEFAULT_DATA_SOURCE_SCORE = 10

# Covers both provider-level data sources and report channels
DATA_SOURCE_SCORES: dict[str, int] = {
    "CMS_NPPES": 30,
    "CMS_PLAN_FINDER": 30,
    "CMS_DATA": 30,
    "CARRIER_API": 27,
    "CARRIER_DATA": 27,
    "PROVIDER_PORTAL": 23,
    "PHONE_CALL": 22,
    "USER_UPLOAD": 15,
    "CROWDSOURCE": 15,
    "AUTOMATED": 15,
}

# (minimum agreement ratio, points) checked top-down
_AGREEMENT_BANDS: tuple[tuple[float, int], ...] = (
    (1.0, 20),
    (0.8, 15),
    (0.6, 10),
    (0.4, 5),
)

_LEVEL_THRESHOLDS: tuple[tuple[float, ConfidenceLevel], ...] = (
    (91, ConfidenceLevel.VERY_HIGH),
    (76, ConfidenceLevel.HIGH),
    (51, ConfidenceLevel.MEDIUM),
    (26, ConfidenceLevel.LOW),
)

_LEVEL_DESCRIPTIONS: dict[ConfidenceLevel, str] = {
    ConfidenceLevel.VERY_HIGH: "Verified through multiple authoritative sources with expert-level accuracy.",
    ConfidenceLevel.HIGH: "Verified through authoritative sources or multiple community verifications.",
    ConfidenceLevel.MEDIUM: "Some verification exists, but may need confirmation.",
    ConfidenceLevel.LOW: "Limited verification data. Call provider to confirm before visiting.",
    ConfidenceLevel.VERY_LOW: "Unverified or potentially inaccurate. Always call to confirm.",
}

_RESEARCH_NOTES: dict[SpecialtyCategory, str] = {
    SpecialtyCategory.MENTAL_HEALTH: (
        "Mental health providers show high network turnover. "
        "Only 43% accept Medicaid."
    ),
    SpecialtyCategory.PRIMARY_CARE: "Primary care shows roughly 12% annual provider turnover.",
    SpecialtyCategory.HOSPITAL_BASED: (
        "Hospital-based providers typically have more stable network participation."
    ),
    SpecialtyCategory.SPECIALIST: (
        "Specialist network participation changes regularly (about 12% annual turnover)."
    ),
}


def _days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed, never negative."""
    return max(0, math.floor((later - earlier).total_seconds() / 86400))


class ConfidenceService:
    """Compute confidence scores for acceptance records.

    Usage:
        service = ConfidenceService()
        result = service.calculate(
            ConfidenceInput(
                data_source="CROWDSOURCE",
                last_verified_at=verified_at,
                verification_count=3,
                upvotes=3,
            )
        )
        result.score, result.level
    """

    def __init__(self, config: ConfidenceConfig | None = None) -> None:
        self._config = config or ConfidenceConfig()

    @property
    def config(self) -> ConfidenceConfig:
        return self._config

    # ── Factors ─────────────────────────────────────────

    def data_source_score(self, source: str | None) -> float:
        """Score the data source (0-30). Unknown or missing sources get 10."""
        if not source:
            return float(DEFAULT_DATA_SOURCE_SCORE)
        return float(DATA_SOURCE_SCORES.get(source.upper(), DEFAULT_DATA_SOURCE_SCORE))

    def recency_score(self, days_since_verification: int | None, threshold_days: int) -> float:
        """Score freshness (0-25) against a specialty freshness window."""
        if days_since_verification is None:
            return 0.0
        if days_since_verification <= threshold_days:
            return float(MAX_RECENCY_SCORE)
        decay_end = threshold_days * 2
        if days_since_verification >= decay_end:
            return 0.0
        remaining = (decay_end - days_since_verification) / threshold_days
        return MAX_RECENCY_SCORE * remaining

    def verification_score(self, verification_count: int) -> float:
        """Score verification volume (0-25).

        0 -> 0, 1 -> 10, 2 -> 15, threshold -> 22, then one point per extra
        verification up to the cap.
        """
        threshold = self._config.min_verifications_for_high_confidence
        if verification_count <= 0:
            return 0.0
        if verification_count < threshold:
            return 10.0 if verification_count == 1 else 15.0
        extra = verification_count - threshold
        return float(min(MAX_VERIFICATION_SCORE, 22 + extra))

    def agreement_score(self, upvotes: int, downvotes: int) -> float:
        """Score agreement (0-20), scaled down while vote volume is small."""
        total_votes = upvotes + downvotes
        if total_votes == 0:
            return 0.0
        return self._agreement_band(upvotes / total_votes) * self._engagement(total_votes)

    def _agreement_band(self, ratio: float) -> int:
        for minimum, points in _AGREEMENT_BANDS:
            if ratio >= minimum:
                return points
        return 0

    def _engagement(self, total_votes: int) -> float:
        return min(1.0, total_votes / self._config.engagement_full_votes)

    # ── Levels ──────────────────────────────────────────

    def confidence_level(self, score: float, verification_count: int) -> ConfidenceLevel:
        """Map a score to a level, capping at MEDIUM below the verification threshold."""
        level = ConfidenceLevel.VERY_LOW
        for minimum, candidate in _LEVEL_THRESHOLDS:
            if score >= minimum:
                level = candidate
                break

        threshold = self._config.min_verifications_for_high_confidence
        if 0 < verification_count < threshold and level in (
            ConfidenceLevel.VERY_HIGH,
            ConfidenceLevel.HIGH,
        ):
            return ConfidenceLevel.MEDIUM
        return level

    def level_description(self, level: ConfidenceLevel, verification_count: int) -> str:
        description = _LEVEL_DESCRIPTIONS[level]
        threshold = self._config.min_verifications_for_high_confidence
        if verification_count < threshold:
            description += (
                f" Research shows {threshold} verifications achieve expert-level accuracy."
            )
        return description

    # ── Composite ───────────────────────────────────────

    def calculate(
        self,
        data: ConfidenceInput,
        *,
        now: datetime | None = None,
    ) -> ConfidenceResult:
        """Compute the composite confidence score.

        Args:
            data: Formula inputs.
            now: Reference time (default: UTC now).

        Returns:
            ConfidenceResult with score, level, factors and staleness metadata.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        category = classify_specialty(data.specialty, data.taxonomy_description)
        threshold = freshness_threshold_days(category, self._config)

        days_since: int | None = None
        if data.last_verified_at is not None:
            days_since = _days_between(data.last_verified_at, now)

        factors = ConfidenceFactors(
            data_source_score=self.data_source_score(data.data_source),
            recency_score=self.recency_score(days_since, threshold),
            verification_score=self.verification_score(data.verification_count),
            agreement_score=self.agreement_score(data.upvotes, data.downvotes),
        )

        score = round(max(0.0, min(100.0, factors.total)), 2)
        level = self.confidence_level(score, data.verification_count)

        is_stale = days_since is not None and days_since > threshold
        days_until_stale = (
            max(0, threshold - days_since) if days_since is not None else threshold
        )
        recommend_reverification = (
            is_stale
            or days_since is None
            or days_since > threshold * self._config.reverify_fraction
        )

        research_note = _RESEARCH_NOTES[category]
        if data.verification_count < self._config.min_verifications_for_high_confidence:
            research_note += (
                f" {self._config.min_verifications_for_high_confidence} verifications"
                " achieve expert-level accuracy."
            )

        metadata = ConfidenceMetadata(
            days_until_stale=days_until_stale,
            is_stale=is_stale,
            recommend_reverification=recommend_reverification,
            days_since_verification=days_since,
            freshness_threshold=threshold,
            specialty_category=category,
            research_note=research_note,
            explanation=self._explain(score, factors, data, days_since, threshold),
        )

        return ConfidenceResult(
            score=score,
            level=level,
            description=self.level_description(level, data.verification_count),
            factors=factors,
            metadata=metadata,
        )

    def _explain(
        self,
        score: float,
        factors: ConfidenceFactors,
        data: ConfidenceInput,
        days_since: int | None,
        threshold: int,
    ) -> str:
        """Build a one-sentence explanation from the factor bands that were hit."""
        parts: list[str] = []

        if factors.data_source_score >= 30:
            parts.append("verified through official CMS data")
        elif factors.data_source_score >= 25:
            parts.append("verified through insurance carrier data")
        elif factors.data_source_score >= 20:
            parts.append("confirmed by the provider's office")
        elif factors.data_source_score >= 15:
            parts.append("verified through community submissions")
        else:
            parts.append("limited authoritative data")

        if days_since is None:
            parts.append("never verified - needs community verification")
        elif factors.recency_score >= MAX_RECENCY_SCORE:
            parts.append(f"recent verification ({days_since} days ago)")
        elif factors.recency_score > 0:
            parts.append(
                f"aging data ({days_since} days old, past the {threshold}-day freshness window)"
            )
        else:
            parts.append(f"stale data ({days_since} days old) - needs re-verification")

        threshold_count = self._config.min_verifications_for_high_confidence
        count = data.verification_count
        if count == 0:
            parts.append("no patient verifications yet")
        elif count < threshold_count:
            missing = threshold_count - count
            parts.append(
                f"{count} verification{'s' if count != 1 else ''} "
                f"({missing} more needed for expert-level accuracy)"
            )
        elif count == threshold_count:
            parts.append(f"{count} verifications (expert-level accuracy achieved)")
        else:
            parts.append(f"{count} verifications (exceeds expert-level threshold)")

        total_votes = data.upvotes + data.downvotes
        if total_votes > 0:
            band = self._agreement_band(data.upvotes / total_votes)
            if band == 20:
                phrase = "complete community consensus"
            elif band == 15:
                phrase = "strong community consensus"
            elif band == 10:
                phrase = "moderate community consensus"
            elif band == 5:
                phrase = "weak community consensus"
            else:
                phrase = "conflicting community data"
            if self._engagement(total_votes) < 1.0:
                phrase += f" from only {total_votes} vote{'s' if total_votes != 1 else ''}"
            parts.append(phrase)
        elif count > 0:
            parts.append("no community votes yet")

        return f"This {score:g}% confidence score is based on: {', '.join(parts)}."
