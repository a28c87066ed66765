"""Shared fixtures for API tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.auth import verify_api_key
from src.api.dependencies import (
    get_confidence_service,
    get_database,
    get_verification_service,
    get_vote_ledger,
)
from src.confidence.schemas import ConfidenceInput
from src.confidence.service import ConfidenceService
from src.verification.schemas import (
    AcceptanceRecord,
    AcceptanceStatus,
    PlanAcceptanceValue,
    ReportLogEntry,
    SubmissionResult,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _make_report(**kwargs) -> ReportLogEntry:
    """Helper to create a ReportLogEntry with sensible defaults."""
    return ReportLogEntry(
        id=kwargs.pop("id", "verif_abc123def456"),
        provider_npi=kwargs.pop("provider_npi", "1234567890"),
        plan_id=kwargs.pop("plan_id", "BCBS-PPO-2026"),
        new_value=kwargs.pop(
            "new_value", PlanAcceptanceValue(acceptance_status=AcceptanceStatus.ACCEPTED)
        ),
        acceptance_id=kwargs.pop("acceptance_id", 1),
        source_ip=kwargs.pop("source_ip", "203.0.113.7"),
        submitted_by=kwargs.pop("submitted_by", "pat@example.com"),
        user_agent=kwargs.pop("user_agent", "testclient"),
        created_at=kwargs.pop("created_at", NOW),
        expires_at=kwargs.pop("expires_at", NOW + timedelta(days=180)),
        **kwargs,
    )


def _make_acceptance(**kwargs) -> AcceptanceRecord:
    """Helper to create an AcceptanceRecord with sensible defaults."""
    return AcceptanceRecord(
        id=kwargs.pop("id", 1),
        provider_npi=kwargs.pop("provider_npi", "1234567890"),
        plan_id=kwargs.pop("plan_id", "BCBS-PPO-2026"),
        acceptance_status=kwargs.pop("acceptance_status", AcceptanceStatus.PENDING),
        confidence_score=kwargs.pop("confidence_score", 54),
        last_verified=kwargs.pop("last_verified", NOW),
        verification_count=kwargs.pop("verification_count", 1),
        verification_source=kwargs.pop("verification_source", "CROWDSOURCE"),
        expires_at=kwargs.pop("expires_at", NOW + timedelta(days=180)),
        **kwargs,
    )


def _make_submission_result(**kwargs) -> SubmissionResult:
    acceptance = kwargs.pop("acceptance", _make_acceptance())
    confidence = ConfidenceService().calculate(
        ConfidenceInput(
            data_source="CROWDSOURCE",
            last_verified_at=NOW,
            verification_count=acceptance.verification_count,
            upvotes=acceptance.verification_count,
        ),
        now=NOW,
    )
    return SubmissionResult(
        report=kwargs.pop("report", _make_report()),
        acceptance=acceptance,
        confidence=confidence,
        status_changed=kwargs.pop("status_changed", False),
    )


@pytest.fixture
def mock_verification_service():
    """Mock VerificationService."""
    service = AsyncMock()
    service.submit_report = AsyncMock(return_value=_make_submission_result())
    service.get_recent_reports = AsyncMock(return_value=[])
    service.get_stats = AsyncMock(return_value={
        "total": 0,
        "recent_24h": 0,
        "by_type": {},
        "by_source": {},
    })
    service.get_expiration_stats = AsyncMock()
    return service


@pytest.fixture
def mock_vote_ledger():
    """Mock VoteLedger."""
    return AsyncMock()


@pytest.fixture
def mock_db():
    """Mock database."""
    db = AsyncMock()
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def client(mock_verification_service, mock_vote_ledger, mock_db):
    """FastAPI TestClient with dependency overrides."""
    app = create_app()

    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_verification_service] = lambda: mock_verification_service
    app.dependency_overrides[get_vote_ledger] = lambda: mock_vote_ledger
    app.dependency_overrides[get_confidence_service] = lambda: ConfidenceService()
    app.dependency_overrides[get_database] = lambda: mock_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
