"""Tests for verification schemas."""

from datetime import timedelta

import pytest

from src.verification.schemas import (
    PII_FIELDS,
    AcceptanceRecord,
    AcceptanceStatus,
    PlanAcceptanceValue,
    ReportLogEntry,
    VerificationType,
    is_live,
    parse_report_value,
)


def _report(**kwargs) -> ReportLogEntry:
    return ReportLogEntry(
        provider_npi="1234567890",
        plan_id="BCBS-PPO-2026",
        new_value=PlanAcceptanceValue(acceptance_status=AcceptanceStatus.ACCEPTED),
        source_ip="203.0.113.7",
        submitted_by="pat@example.com",
        user_agent="Mozilla/5.0",
        **kwargs,
    )


class TestReportLogEntry:
    """Tests for ReportLogEntry."""

    def test_generated_id_prefix(self):
        assert _report().id.startswith("verif_")

    def test_public_dict_strips_submitter_fields(self):
        data = _report().to_public_dict()

        for name in PII_FIELDS:
            assert name not in data
        assert data["new_value"] == {"acceptance_status": "ACCEPTED"}

    def test_full_dict_keeps_submitter_fields(self):
        data = _report().to_dict()
        assert data["source_ip"] == "203.0.113.7"

    def test_net_votes(self):
        assert _report(upvotes=5, downvotes=2).net_votes == 3

    def test_expiry(self, now):
        assert _report(expires_at=now).is_expired(now)
        assert not _report(expires_at=now + timedelta(seconds=1)).is_expired(now)
        assert not _report(expires_at=None).is_expired(now)


class TestPlanAcceptanceValue:
    """Tests for the PLAN_ACCEPTANCE payload."""

    def test_to_dict_omits_unset_fields(self):
        value = PlanAcceptanceValue(
            acceptance_status=AcceptanceStatus.NOT_ACCEPTED,
            phone_reached=True,
        )
        assert value.to_dict() == {"acceptance_status": "NOT_ACCEPTED", "phone_reached": True}

    def test_from_dict_ignores_unknown_keys(self):
        value = parse_report_value(
            VerificationType.PLAN_ACCEPTANCE,
            {"acceptance_status": "ACCEPTED", "legacy_field": 1, "accepts_new_patients": False},
        )
        assert value.acceptance_status == AcceptanceStatus.ACCEPTED
        assert value.accepts_new_patients is False

    def test_empty_payload(self):
        assert parse_report_value(VerificationType.PLAN_ACCEPTANCE, None) is None


class TestAcceptanceRecord:
    """Tests for AcceptanceRecord validation."""

    def test_score_bounds(self):
        with pytest.raises(ValueError):
            AcceptanceRecord(provider_npi="1234567890", plan_id="P", confidence_score=101)
        with pytest.raises(ValueError):
            AcceptanceRecord(provider_npi="1234567890", plan_id="P", confidence_score=-1)

    def test_snapshot(self):
        record = AcceptanceRecord(
            provider_npi="1234567890",
            plan_id="P",
            acceptance_status=AcceptanceStatus.ACCEPTED,
            confidence_score=74,
        )
        assert record.snapshot().to_dict() == {
            "acceptance_status": "ACCEPTED",
            "confidence_score": 74,
        }

    def test_legacy_rows_without_ttl_are_live(self, now):
        assert is_live(None, now)
        assert not is_live(now - timedelta(days=1), now)
