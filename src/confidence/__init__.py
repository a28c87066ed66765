"""Confidence scoring for provider plan acceptance.

Components:
- ConfidenceService: Four-factor decaying confidence formula
- ConfidenceConfig: Pydantic settings for thresholds and freshness windows
- classify_specialty: Specialty text to churn category mapping
- ConfidenceInput / ConfidenceResult: Formula inputs and outputs
"""

from src.confidence.config import ConfidenceConfig
from src.confidence.schemas import (
    ConfidenceFactors,
    ConfidenceInput,
    ConfidenceLevel,
    ConfidenceMetadata,
    ConfidenceResult,
    SpecialtyCategory,
)
from src.confidence.service import ConfidenceService
from src.confidence.specialty import classify_specialty, freshness_threshold_days

__all__ = [
    "ConfidenceConfig",
    "ConfidenceFactors",
    "ConfidenceInput",
    "ConfidenceLevel",
    "ConfidenceMetadata",
    "ConfidenceResult",
    "ConfidenceService",
    "SpecialtyCategory",
    "classify_specialty",
    "freshness_threshold_days",
]
