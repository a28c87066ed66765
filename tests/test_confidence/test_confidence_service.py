"""Tests for the confidence scoring formula."""

from datetime import timedelta

import pytest

from src.confidence.config import ConfidenceConfig
from src.confidence.schemas import ConfidenceInput, ConfidenceLevel, SpecialtyCategory
from src.confidence.service import ConfidenceService


class TestDataSourceScore:
    """Tests for the data source factor."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("CMS_NPPES", 30),
            ("CMS_DATA", 30),
            ("CARRIER_API", 27),
            ("PROVIDER_PORTAL", 23),
            ("PHONE_CALL", 22),
            ("CROWDSOURCE", 15),
            ("AUTOMATED", 15),
            ("crowdsource", 15),
            ("SOMETHING_ELSE", 10),
            (None, 10),
        ],
    )
    def test_source_scores(self, confidence_service, source, expected):
        assert confidence_service.data_source_score(source) == expected


class TestRecencyScore:
    """Tests for the recency factor."""

    def test_never_verified_scores_zero(self, confidence_service):
        assert confidence_service.recency_score(None, 60) == 0

    def test_full_score_inside_window(self, confidence_service):
        assert confidence_service.recency_score(0, 60) == 25
        assert confidence_service.recency_score(60, 60) == 25

    def test_linear_decay_across_second_window(self, confidence_service):
        assert confidence_service.recency_score(90, 60) == pytest.approx(12.5)
        assert confidence_service.recency_score(75, 60) == pytest.approx(18.75)

    def test_zero_after_twice_threshold(self, confidence_service):
        assert confidence_service.recency_score(120, 60) == 0
        assert confidence_service.recency_score(400, 60) == 0


class TestVerificationScore:
    """Tests for the verification count factor."""

    def test_step_values(self, confidence_service):
        assert confidence_service.verification_score(0) == 0
        assert confidence_service.verification_score(1) == 10
        assert confidence_service.verification_score(2) == 15
        assert confidence_service.verification_score(3) == 22
        assert confidence_service.verification_score(4) == 23
        assert confidence_service.verification_score(6) == 25
        assert confidence_service.verification_score(50) == 25

    def test_monotonic_in_count(self, confidence_service):
        scores = [confidence_service.verification_score(n) for n in range(30)]
        assert scores == sorted(scores)


class TestAgreementScore:
    """Tests for the agreement factor and engagement scaling."""

    def test_no_votes_scores_zero(self, confidence_service):
        assert confidence_service.agreement_score(0, 0) == 0

    def test_unanimous_with_full_engagement(self, confidence_service):
        assert confidence_service.agreement_score(5, 0) == 20

    def test_single_vote_is_scaled_down(self, confidence_service):
        assert confidence_service.agreement_score(1, 0) == pytest.approx(4.0)

    def test_bands(self, confidence_service):
        assert confidence_service.agreement_score(8, 2) == 15
        assert confidence_service.agreement_score(6, 4) == 10
        assert confidence_service.agreement_score(4, 6) == 5
        assert confidence_service.agreement_score(3, 7) == 0


class TestConfidenceLevel:
    """Tests for level mapping and the low-verification cap."""

    @pytest.mark.parametrize(
        "score,expected",
        [
            (95, ConfidenceLevel.VERY_HIGH),
            (80, ConfidenceLevel.HIGH),
            (60, ConfidenceLevel.MEDIUM),
            (30, ConfidenceLevel.LOW),
            (10, ConfidenceLevel.VERY_LOW),
        ],
    )
    def test_thresholds(self, confidence_service, score, expected):
        assert confidence_service.confidence_level(score, 5) == expected

    def test_capped_at_medium_below_threshold(self, confidence_service):
        assert confidence_service.confidence_level(95, 2) == ConfidenceLevel.MEDIUM
        assert confidence_service.confidence_level(80, 1) == ConfidenceLevel.MEDIUM

    def test_cap_does_not_raise_low_scores(self, confidence_service):
        assert confidence_service.confidence_level(30, 1) == ConfidenceLevel.LOW

    def test_zero_verifications_not_capped(self, confidence_service):
        assert confidence_service.confidence_level(95, 0) == ConfidenceLevel.VERY_HIGH

    def test_description_mentions_threshold_when_below(self, confidence_service):
        text = confidence_service.level_description(ConfidenceLevel.MEDIUM, 1)
        assert "3 verifications" in text
        text = confidence_service.level_description(ConfidenceLevel.HIGH, 3)
        assert "3 verifications" not in text


class TestCalculate:
    """Tests for the composite score."""

    def test_single_fresh_crowd_report(self, confidence_service, now):
        result = confidence_service.calculate(
            ConfidenceInput(
                data_source="CROWDSOURCE",
                last_verified_at=now,
                verification_count=1,
                upvotes=1,
                specialty="Family Medicine",
            ),
            now=now,
        )

        assert result.score == 54.0
        assert result.rounded_score == 54
        assert result.level == ConfidenceLevel.MEDIUM
        assert result.factors.data_source_score == 15
        assert result.factors.recency_score == 25
        assert result.factors.verification_score == 10
        assert result.factors.agreement_score == pytest.approx(4.0)

    def test_score_within_bounds(self, confidence_service, now):
        result = confidence_service.calculate(
            ConfidenceInput(
                data_source="CMS_NPPES",
                last_verified_at=now,
                verification_count=100,
                upvotes=100,
            ),
            now=now,
        )
        assert result.score == 100
        assert result.level == ConfidenceLevel.VERY_HIGH

        empty = confidence_service.calculate(ConfidenceInput(), now=now)
        assert empty.score == 10
        assert empty.level == ConfidenceLevel.VERY_LOW

    def test_score_rounded_to_two_decimals(self, confidence_service, now):
        result = confidence_service.calculate(
            ConfidenceInput(
                data_source="CROWDSOURCE",
                last_verified_at=now - timedelta(days=71),
                verification_count=1,
                specialty="Family Medicine",
            ),
            now=now,
        )
        # 15 + 25 * 49/60 + 10
        assert result.score == pytest.approx(45.42)

    def test_specialty_changes_decay(self, confidence_service, now):
        """At 45 days a psychiatrist is stale while a radiologist is fresh."""
        verified = now - timedelta(days=45)
        base = dict(
            data_source="CROWDSOURCE",
            last_verified_at=verified,
            verification_count=3,
            upvotes=3,
        )

        psychiatry = confidence_service.calculate(
            ConfidenceInput(specialty="Psychiatry", **base), now=now
        )
        radiology = confidence_service.calculate(
            ConfidenceInput(specialty="Radiology", **base), now=now
        )

        assert psychiatry.score < radiology.score
        assert psychiatry.metadata.is_stale
        assert not radiology.metadata.is_stale
        assert psychiatry.metadata.specialty_category == SpecialtyCategory.MENTAL_HEALTH
        assert radiology.metadata.freshness_threshold == 90

    def test_future_verification_treated_as_today(self, confidence_service, now):
        result = confidence_service.calculate(
            ConfidenceInput(
                data_source="CROWDSOURCE",
                last_verified_at=now + timedelta(days=2),
                verification_count=1,
            ),
            now=now,
        )
        assert result.metadata.days_since_verification == 0
        assert result.factors.recency_score == 25

    def test_metadata_for_never_verified(self, confidence_service, now):
        result = confidence_service.calculate(ConfidenceInput(), now=now)

        assert result.metadata.days_since_verification is None
        assert result.metadata.recommend_reverification
        assert not result.metadata.is_stale
        assert "never verified" in result.metadata.explanation

    def test_recommend_reverification_near_threshold(self, confidence_service, now):
        result = confidence_service.calculate(
            ConfidenceInput(
                data_source="CROWDSOURCE",
                last_verified_at=now - timedelta(days=50),
                verification_count=3,
                specialty="Family Medicine",
            ),
            now=now,
        )
        assert not result.metadata.is_stale
        assert result.metadata.recommend_reverification
        assert result.metadata.days_until_stale == 10

    def test_explanation_mentions_low_engagement(self, confidence_service, now):
        result = confidence_service.calculate(
            ConfidenceInput(
                data_source="CROWDSOURCE",
                last_verified_at=now,
                verification_count=2,
                upvotes=2,
            ),
            now=now,
        )
        assert "from only 2 votes" in result.metadata.explanation
        assert "1 more needed" in result.metadata.explanation

    def test_custom_threshold(self, now):
        service = ConfidenceService(ConfidenceConfig(min_verifications_for_high_confidence=5))
        assert service.verification_score(3) == 15
        assert service.verification_score(5) == 22
        assert service.confidence_level(95, 4) == ConfidenceLevel.MEDIUM

    def test_to_dict_serializes_enums(self, confidence_service, now):
        data = confidence_service.calculate(ConfidenceInput(), now=now).to_dict()
        assert data["level"] == "VERY_LOW"
        assert data["metadata"]["specialty_category"] == "SPECIALIST"

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError):
            ConfidenceInput(verification_count=-1)
