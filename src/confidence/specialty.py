"""Specialty classification for freshness thresholds.

Maps free-text specialty / taxonomy descriptions onto churn categories via
case-insensitive substring matching. Categories are checked in order and the
first match wins; anything unmatched is a general specialist.
"""

from src.confidence.config import ConfidenceConfig
from src.confidence.schemas import SpecialtyCategory

_CATEGORY_KEYWORDS: tuple[tuple[SpecialtyCategory, tuple[str, ...]], ...] = (
    (
        SpecialtyCategory.MENTAL_HEALTH,
        (
            "psychiatr",
            "psycholog",
            "mental health",
            "behavioral health",
            "counselor",
            "therapist",
        ),
    ),
    (
        SpecialtyCategory.PRIMARY_CARE,
        (
            "family medicine",
            "family practice",
            "internal medicine",
            "general practice",
            "primary care",
        ),
    ),
    (
        SpecialtyCategory.HOSPITAL_BASED,
        (
            "hospital",
            "radiology",
            "anesthesiology",
            "pathology",
            "emergency medicine",
        ),
    ),
)


def classify_specialty(
    specialty: str | None = None,
    taxonomy_description: str | None = None,
) -> SpecialtyCategory:
    """Classify a provider into a churn category.

    Args:
        specialty: Provider's primary specialty text.
        taxonomy_description: Provider taxonomy description text.

    Returns:
        The first matching SpecialtyCategory, or SPECIALIST when nothing matches.
    """
    search_text = f"{specialty or ''} {taxonomy_description or ''}".lower()

    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in search_text for keyword in keywords):
            return category

    return SpecialtyCategory.SPECIALIST


def freshness_threshold_days(
    category: SpecialtyCategory,
    config: ConfidenceConfig | None = None,
) -> int:
    """Look up the configured freshness window for a category."""
    cfg = config or ConfidenceConfig()
    thresholds = {
        SpecialtyCategory.MENTAL_HEALTH: cfg.freshness_days_mental_health,
        SpecialtyCategory.PRIMARY_CARE: cfg.freshness_days_primary_care,
        SpecialtyCategory.SPECIALIST: cfg.freshness_days_specialist,
        SpecialtyCategory.HOSPITAL_BASED: cfg.freshness_days_hospital_based,
    }
    return thresholds[category]
