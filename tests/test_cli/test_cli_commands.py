"""Tests for the provider-verify CLI commands."""

from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from src.cli import main
from src.verification.cleanup_job import ExpiryCleanupResult
from src.verification.decay_job import DecayRecalculationResult


@pytest.fixture
def runner():
    return CliRunner()


def _mock_db():
    """Create a mock Database that works as async context."""
    db = AsyncMock()
    db.connect = AsyncMock()
    db.close = AsyncMock()
    db.execute = AsyncMock(return_value="CREATE TABLE")
    db.health_check = AsyncMock(return_value=True)
    return db


class TestInitDb:
    """Tests for `init-db`."""

    def test_creates_tables_in_order(self, runner):
        mock_db = _mock_db()

        with patch("src.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["init-db"])

        assert result.exit_code == 0, result.output
        assert "Database initialized successfully" in result.output
        statements = [c.args[0] for c in mock_db.execute.call_args_list]
        assert "CREATE TABLE IF NOT EXISTS providers" in statements[0]
        assert "verification_logs" in statements[1]
        mock_db.close.assert_awaited_once()

    def test_closes_db_on_failure(self, runner):
        mock_db = _mock_db()
        mock_db.execute = AsyncMock(side_effect=RuntimeError("permission denied"))

        with patch("src.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["init-db"])

        assert result.exit_code != 0
        mock_db.close.assert_awaited_once()


class TestHealth:
    """Tests for `health`."""

    def test_healthy(self, runner):
        with patch("src.storage.database.Database", return_value=_mock_db()):
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 0, result.output
        assert "postgres: True" in result.output

    def test_postgres_down(self, runner):
        mock_db = _mock_db()
        mock_db.connect = AsyncMock(side_effect=OSError("Connection refused"))

        with patch("src.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 1
        assert "Some services unhealthy!" in result.output


class TestCleanupExpired:
    """Tests for `cleanup-expired`."""

    def test_dry_run(self, runner):
        job = AsyncMock(
            return_value=ExpiryCleanupResult(expired_reports=5, expired_acceptances=2, dry_run=True)
        )

        with patch("src.storage.database.Database", return_value=_mock_db()):
            with patch("src.verification.cleanup_job.run_expiry_cleanup", job):
                result = runner.invoke(main, ["cleanup-expired", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "would delete 5 reports and 2 acceptance records" in result.output
        assert job.call_args.kwargs == {"dry_run": True, "batch_size": None}

    def test_delete(self, runner):
        job = AsyncMock(
            return_value=ExpiryCleanupResult(
                expired_reports=5,
                expired_acceptances=2,
                deleted_reports=5,
                deleted_acceptances=2,
            )
        )

        with patch("src.storage.database.Database", return_value=_mock_db()):
            with patch("src.verification.cleanup_job.run_expiry_cleanup", job):
                result = runner.invoke(main, ["cleanup-expired", "--batch-size", "200"])

        assert result.exit_code == 0, result.output
        assert "Deleted 5 reports and 2 acceptance records" in result.output
        assert job.call_args.kwargs["batch_size"] == 200


class TestRecalculateConfidence:
    """Tests for `recalculate-confidence`."""

    def test_success(self, runner):
        job = AsyncMock(
            return_value=DecayRecalculationResult(processed=8, updated=3, unchanged=5)
        )

        with patch("src.storage.database.Database", return_value=_mock_db()):
            with patch("src.verification.decay_job.run_decay_recalculation", job):
                result = runner.invoke(main, ["recalculate-confidence", "--limit", "8"])

        assert result.exit_code == 0, result.output
        assert "Recalculation complete" in result.output
        assert "Processed: 8" in result.output
        assert job.call_args.kwargs["limit"] == 8
        assert callable(job.call_args.kwargs["on_progress"])

    def test_dry_run_label(self, runner):
        job = AsyncMock(
            return_value=DecayRecalculationResult(processed=1, updated=1, dry_run=True)
        )

        with patch("src.storage.database.Database", return_value=_mock_db()):
            with patch("src.verification.decay_job.run_decay_recalculation", job):
                result = runner.invoke(main, ["recalculate-confidence", "--dry-run"])

        assert "Dry run complete" in result.output
        assert "Would update: 1" in result.output

    def test_errors_exit_nonzero(self, runner):
        job = AsyncMock(
            return_value=DecayRecalculationResult(
                processed=2,
                unchanged=1,
                errors=1,
                error_messages=["acceptance 7: division by zero"],
            )
        )

        with patch("src.storage.database.Database", return_value=_mock_db()):
            with patch("src.verification.decay_job.run_decay_recalculation", job):
                result = runner.invoke(main, ["recalculate-confidence"])

        assert result.exit_code == 1
        assert "acceptance 7: division by zero" in result.output


class TestExpirationStats:
    """Tests for `expiration-stats`."""

    def test_prints_each_table(self, runner):
        mock_db = _mock_db()
        mock_db.fetchrow = AsyncMock(return_value={
            "total": 6,
            "with_ttl": 5,
            "expired": 1,
            "expiring_within_7_days": 0,
            "expiring_within_30_days": 2,
        })

        with patch("src.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["expiration-stats"])

        assert result.exit_code == 0, result.output
        assert "verification_logs" in result.output
        assert "provider_plan_acceptance" in result.output
        assert "expired: 1" in result.output
