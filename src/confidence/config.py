"""Configuration for the confidence scoring formula.

Controls the verification threshold, specialty freshness windows and the
engagement ramp for the agreement factor. All settings can be overridden
via ``CONFIDENCE_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfidenceConfig(BaseSettings):
    """Configuration for the confidence scoring formula."""

    model_config = SettingsConfigDict(
        env_prefix="CONFIDENCE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Verification count at which crowd data reaches expert-level accuracy
    min_verifications_for_high_confidence: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Verifications needed before the level may exceed MEDIUM.",
    )

    # Specialty freshness thresholds (days)
    freshness_days_mental_health: int = Field(
        default=30,
        ge=1,
        description="Freshness window for mental health providers (highest churn).",
    )
    freshness_days_primary_care: int = Field(
        default=60,
        ge=1,
        description="Freshness window for primary care providers.",
    )
    freshness_days_specialist: int = Field(
        default=60,
        ge=1,
        description="Freshness window for all other specialists.",
    )
    freshness_days_hospital_based: int = Field(
        default=90,
        ge=1,
        description="Freshness window for hospital-based providers (most stable).",
    )

    # Agreement factor
    engagement_full_votes: int = Field(
        default=5,
        ge=1,
        description="Total votes at which the agreement factor is no longer scaled down.",
    )

    # Re-verification nudge
    reverify_fraction: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Fraction of the freshness window after which re-verification is recommended.",
    )
