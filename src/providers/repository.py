"""Provider directory repository.

Read side of the provider-lookup capability the verification core depends
on, plus upserts used by seeding and tests.
"""

import logging
from typing import Any

from src.providers.schemas import InsurancePlan, Provider
from src.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS providers (
    npi TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    primary_specialty TEXT,
    taxonomy_description TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS insurance_plans (
    plan_id TEXT PRIMARY KEY,
    plan_name TEXT NOT NULL DEFAULT '',
    issuer_name TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


class ProviderRepository:
    """Repository for providers and insurance plans."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create the provider directory tables if they do not exist."""
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Provider directory tables ensured")

    async def get_provider(self, npi: str) -> Provider | None:
        row = await self._db.fetchrow("SELECT * FROM providers WHERE npi = $1", npi)
        return _row_to_provider(row) if row else None

    async def get_plan(self, plan_id: str) -> InsurancePlan | None:
        row = await self._db.fetchrow(
            "SELECT * FROM insurance_plans WHERE plan_id = $1", plan_id
        )
        return _row_to_plan(row) if row else None

    async def upsert_provider(self, provider: Provider) -> Provider:
        """Insert a provider or refresh its descriptive columns."""
        sql = """
            INSERT INTO providers (npi, name, primary_specialty, taxonomy_description)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (npi) DO UPDATE SET
                name = EXCLUDED.name,
                primary_specialty = EXCLUDED.primary_specialty,
                taxonomy_description = EXCLUDED.taxonomy_description,
                updated_at = NOW()
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            provider.npi,
            provider.name,
            provider.primary_specialty,
            provider.taxonomy_description,
        )
        return _row_to_provider(row)

    async def upsert_plan(self, plan: InsurancePlan) -> InsurancePlan:
        sql = """
            INSERT INTO insurance_plans (plan_id, plan_name, issuer_name)
            VALUES ($1, $2, $3)
            ON CONFLICT (plan_id) DO UPDATE SET
                plan_name = EXCLUDED.plan_name,
                issuer_name = EXCLUDED.issuer_name,
                updated_at = NOW()
            RETURNING *
        """
        row = await self._db.fetchrow(sql, plan.plan_id, plan.plan_name, plan.issuer_name)
        return _row_to_plan(row)


def _row_to_provider(row: Any) -> Provider:
    """Convert an asyncpg Record to a Provider."""
    return Provider(
        npi=row["npi"],
        name=row["name"] or "",
        primary_specialty=row.get("primary_specialty"),
        taxonomy_description=row.get("taxonomy_description"),
    )


def _row_to_plan(row: Any) -> InsurancePlan:
    """Convert an asyncpg Record to an InsurancePlan."""
    return InsurancePlan(
        plan_id=row["plan_id"],
        plan_name=row["plan_name"] or "",
        issuer_name=row.get("issuer_name"),
    )
