"""Tests for the provider directory repository and schemas."""

from unittest.mock import AsyncMock

import pytest

from src.providers.repository import ProviderRepository
from src.providers.schemas import InsurancePlan, Provider


def _mock_db():
    db = AsyncMock()
    db.execute = AsyncMock(return_value="CREATE TABLE")
    db.fetchrow = AsyncMock(return_value=None)
    return db


class TestProviderSchemas:
    """Validation on construction."""

    def test_valid_provider(self):
        provider = Provider(npi="1234567890", name="Dr. Jane Rivera")
        assert provider.primary_specialty is None

    @pytest.mark.parametrize("npi", ["123", "12345678901", "12345abcde", ""])
    def test_invalid_npi(self, npi):
        with pytest.raises(ValueError, match="Invalid NPI"):
            Provider(npi=npi)

    def test_empty_plan_id(self):
        with pytest.raises(ValueError):
            InsurancePlan(plan_id="")


class TestProviderRepository:
    """Queries issued against the database wrapper."""

    @pytest.mark.asyncio
    async def test_create_tables(self):
        db = _mock_db()
        await ProviderRepository(db).create_tables()

        sql = db.execute.call_args[0][0]
        assert "CREATE TABLE IF NOT EXISTS providers" in sql
        assert "CREATE TABLE IF NOT EXISTS insurance_plans" in sql

    @pytest.mark.asyncio
    async def test_get_provider_found(self):
        db = _mock_db()
        db.fetchrow.return_value = {
            "npi": "1234567890",
            "name": "Dr. Jane Rivera",
            "primary_specialty": "Family Medicine",
            "taxonomy_description": None,
        }

        provider = await ProviderRepository(db).get_provider("1234567890")

        assert provider == Provider(
            npi="1234567890",
            name="Dr. Jane Rivera",
            primary_specialty="Family Medicine",
        )
        assert db.fetchrow.call_args[0][1] == "1234567890"

    @pytest.mark.asyncio
    async def test_get_provider_missing(self):
        assert await ProviderRepository(_mock_db()).get_provider("1234567890") is None

    @pytest.mark.asyncio
    async def test_get_plan_null_name(self):
        db = _mock_db()
        db.fetchrow.return_value = {"plan_id": "AETNA-HMO", "plan_name": None, "issuer_name": "Aetna"}

        plan = await ProviderRepository(db).get_plan("AETNA-HMO")

        assert plan.plan_name == ""
        assert plan.issuer_name == "Aetna"

    @pytest.mark.asyncio
    async def test_upsert_provider(self):
        db = _mock_db()
        db.fetchrow.return_value = {
            "npi": "1234567890",
            "name": "Dr. Jane Rivera",
            "primary_specialty": "Psychiatry",
            "taxonomy_description": "Psychiatry & Neurology",
        }
        provider = Provider(
            npi="1234567890",
            name="Dr. Jane Rivera",
            primary_specialty="Psychiatry",
            taxonomy_description="Psychiatry & Neurology",
        )

        saved = await ProviderRepository(db).upsert_provider(provider)

        assert saved == provider
        sql, *params = db.fetchrow.call_args[0]
        assert "ON CONFLICT (npi) DO UPDATE" in sql
        assert params == ["1234567890", "Dr. Jane Rivera", "Psychiatry", "Psychiatry & Neurology"]

    @pytest.mark.asyncio
    async def test_upsert_plan(self):
        db = _mock_db()
        db.fetchrow.return_value = {
            "plan_id": "BCBS-PPO-2026",
            "plan_name": "Blue Cross PPO",
            "issuer_name": None,
        }

        saved = await ProviderRepository(db).upsert_plan(
            InsurancePlan(plan_id="BCBS-PPO-2026", plan_name="Blue Cross PPO")
        )

        assert saved.plan_name == "Blue Cross PPO"
        assert "ON CONFLICT (plan_id) DO UPDATE" in db.fetchrow.call_args[0][0]
