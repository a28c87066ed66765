"""Configuration for the verification core.

Controls report TTL, the Sybil cooldown window, the consensus gate and the
batch sizes of the decay and expiry jobs. All settings can be overridden via
``VERIFICATION_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VerificationConfig(BaseSettings):
    """Configuration for submissions, votes and lifecycle jobs."""

    model_config = SettingsConfigDict(
        env_prefix="VERIFICATION_",
        case_sensitive=False,
        extra="ignore",
    )

    # Lifecycle
    ttl_days: int = Field(
        default=180,
        ge=1,
        description="Days until a report or acceptance record expires (6 x 30 days).",
    )
    sybil_window_days: int = Field(
        default=30,
        ge=1,
        description="Lookback window for duplicate submissions by address or identity.",
    )

    # Consensus gate
    min_verifications_for_consensus: int = Field(
        default=3,
        ge=1,
        description="Non-expired reports required before a status may change.",
    )
    min_confidence_for_status_change: float = Field(
        default=60.0,
        ge=0.0,
        le=100.0,
        description="Provisional confidence score required before a status may change.",
    )
    clear_majority_ratio: float = Field(
        default=2.0,
        ge=1.0,
        description="Majority must exceed minority times this ratio.",
    )

    # Reads
    pair_report_limit: int = Field(
        default=50,
        ge=1,
        description="Most recent reports returned with a pair aggregate.",
    )
    max_recent_limit: int = Field(
        default=100,
        ge=1,
        description="Upper bound on the recent-reports page size.",
    )

    # Batch jobs
    decay_batch_size: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Acceptance records fetched per decay recalculation page.",
    )
    cleanup_batch_size: int = Field(
        default=1000,
        ge=1,
        le=100000,
        description="Rows deleted per expiry cleanup batch.",
    )
