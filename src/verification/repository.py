"""Verification repository for acceptance records, report logs and votes.

All writes that participate in consensus run through ``transaction()``,
which binds a repository to a single connection and optionally takes a
PostgreSQL advisory transaction lock on a caller-chosen key. Vote counters
are only ever changed with in-place SQL arithmetic.

Every query that filters on liveness uses ``expires_at IS NULL OR
expires_at > $now`` with ``now`` supplied by the caller's clock.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any

import asyncpg

from src.storage.database import Database
from src.verification.schemas import (
    AcceptanceRecord,
    AcceptanceSnapshot,
    AcceptanceStatus,
    ConsensusCounts,
    DecayCandidate,
    PairSummary,
    ReportLogEntry,
    VerificationSource,
    VerificationType,
    VoteDirection,
    VoteRecord,
    parse_report_value,
)

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS provider_plan_acceptance (
    id BIGSERIAL PRIMARY KEY,
    provider_npi TEXT NOT NULL REFERENCES providers(npi) ON DELETE CASCADE,
    plan_id TEXT NOT NULL REFERENCES insurance_plans(plan_id) ON DELETE CASCADE,
    location_id BIGINT,
    acceptance_status TEXT NOT NULL DEFAULT 'PENDING',
    confidence_score INTEGER NOT NULL DEFAULT 0
        CHECK (confidence_score BETWEEN 0 AND 100),
    last_verified TIMESTAMPTZ,
    verification_count INTEGER NOT NULL DEFAULT 0 CHECK (verification_count >= 0),
    verification_source TEXT,
    accepts_new_patients BOOLEAN,
    expires_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_ppa_pair_no_location
    ON provider_plan_acceptance (provider_npi, plan_id)
    WHERE location_id IS NULL;
CREATE UNIQUE INDEX IF NOT EXISTS idx_ppa_pair_location
    ON provider_plan_acceptance (provider_npi, plan_id, location_id)
    WHERE location_id IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_ppa_expires_at
    ON provider_plan_acceptance (expires_at);

CREATE TABLE IF NOT EXISTS verification_logs (
    id TEXT PRIMARY KEY,
    provider_npi TEXT NOT NULL,
    plan_id TEXT NOT NULL,
    location_id BIGINT,
    acceptance_id BIGINT REFERENCES provider_plan_acceptance(id) ON DELETE SET NULL,
    verification_type TEXT NOT NULL,
    verification_source TEXT NOT NULL,
    previous_value JSONB,
    new_value JSONB NOT NULL,
    notes TEXT,
    evidence_url TEXT,
    submitted_by TEXT,
    source_ip TEXT,
    user_agent TEXT,
    upvotes INTEGER NOT NULL DEFAULT 0 CHECK (upvotes >= 0),
    downvotes INTEGER NOT NULL DEFAULT 0 CHECK (downvotes >= 0),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    expires_at TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_vlog_pair_created
    ON verification_logs (provider_npi, plan_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_vlog_expires_at
    ON verification_logs (expires_at);
CREATE INDEX IF NOT EXISTS idx_vlog_source_ip
    ON verification_logs (source_ip);
CREATE INDEX IF NOT EXISTS idx_vlog_submitted_by
    ON verification_logs (submitted_by);

CREATE TABLE IF NOT EXISTS vote_logs (
    id TEXT PRIMARY KEY,
    verification_id TEXT NOT NULL REFERENCES verification_logs(id) ON DELETE CASCADE,
    source_ip TEXT NOT NULL,
    vote TEXT NOT NULL CHECK (vote IN ('up', 'down')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (verification_id, source_ip)
);
"""

_LIVE = "(expires_at IS NULL OR expires_at > $%d)"


# Shared by the expiry count and delete so dry runs match live runs
_NO_LIVE_BACKING = """NOT EXISTS (
                    SELECT 1 FROM verification_logs v
                    WHERE v.provider_npi = a.provider_npi
                      AND v.plan_id = a.plan_id
                      AND v.location_id IS NOT DISTINCT FROM a.location_id
                      AND (v.expires_at IS NULL OR v.expires_at > $1)
                  )"""


def _live(param_idx: int) -> str:
    """Liveness predicate bound to the ``now`` parameter at ``param_idx``."""
    return _LIVE % param_idx


class VerificationRepository:
    """Repository for acceptance records, report logs and vote records.

    ``executor`` is either the pooled ``Database`` or, inside
    ``transaction()``, a single asyncpg connection. Both expose the same
    execute/fetch/fetchrow/fetchval interface.
    """

    def __init__(
        self,
        executor: Database | asyncpg.Connection,
        *,
        in_transaction: bool = False,
    ) -> None:
        self._db = executor
        self._in_transaction = in_transaction

    async def create_tables(self) -> None:
        """Create verification tables and indexes if they do not exist."""
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Verification tables ensured")

    @asynccontextmanager
    async def transaction(
        self,
        lock_key: str | None = None,
    ) -> AsyncIterator["VerificationRepository"]:
        """Run a block in one transaction, serialised on ``lock_key``.

        The lock is a transaction-scoped advisory lock, released on commit
        or rollback. Nested calls reuse the outer transaction.

        Usage:
            async with repo.transaction(lock_key="pair:1234567890:PLAN") as tx:
                await tx.insert_report(entry)
        """
        if self._in_transaction:
            if lock_key is not None:
                await self._advisory_lock(lock_key)
            yield self
            return

        async with self._db.transaction() as conn:
            bound = VerificationRepository(conn, in_transaction=True)
            if lock_key is not None:
                await bound._advisory_lock(lock_key)
            yield bound

    async def _advisory_lock(self, key: str) -> None:
        await self._db.execute("SELECT pg_advisory_xact_lock(hashtext($1))", key)

    # ── Acceptance records ──────────────────────────────

    async def get_acceptance(
        self,
        provider_npi: str,
        plan_id: str,
        location_id: int | None = None,
    ) -> AcceptanceRecord | None:
        """Fetch the acceptance record for an exact key, expired or not."""
        sql = """
            SELECT * FROM provider_plan_acceptance
            WHERE provider_npi = $1 AND plan_id = $2
              AND location_id IS NOT DISTINCT FROM $3
        """
        row = await self._db.fetchrow(sql, provider_npi, plan_id, location_id)
        return _row_to_acceptance(row) if row else None

    async def get_acceptance_by_id(self, acceptance_id: int) -> AcceptanceRecord | None:
        row = await self._db.fetchrow(
            "SELECT * FROM provider_plan_acceptance WHERE id = $1", acceptance_id
        )
        return _row_to_acceptance(row) if row else None

    async def insert_acceptance(self, record: AcceptanceRecord) -> AcceptanceRecord:
        sql = """
            INSERT INTO provider_plan_acceptance (
                provider_npi, plan_id, location_id, acceptance_status,
                confidence_score, last_verified, verification_count,
                verification_source, accepts_new_patients, expires_at,
                created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $11)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            record.provider_npi,
            record.plan_id,
            record.location_id,
            record.acceptance_status.value,
            record.confidence_score,
            record.last_verified,
            record.verification_count,
            record.verification_source,
            record.accepts_new_patients,
            record.expires_at,
            record.created_at,
        )
        return _row_to_acceptance(row)

    async def update_acceptance(self, record: AcceptanceRecord) -> AcceptanceRecord:
        """Write back every mutable column of an existing record."""
        sql = """
            UPDATE provider_plan_acceptance SET
                acceptance_status = $2,
                confidence_score = $3,
                last_verified = $4,
                verification_count = $5,
                verification_source = $6,
                accepts_new_patients = $7,
                expires_at = $8,
                updated_at = $9
            WHERE id = $1
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            record.id,
            record.acceptance_status.value,
            record.confidence_score,
            record.last_verified,
            record.verification_count,
            record.verification_source,
            record.accepts_new_patients,
            record.expires_at,
            record.updated_at,
        )
        return _row_to_acceptance(row)

    async def update_confidence_score(
        self,
        acceptance_id: int,
        score: int,
        now: datetime,
    ) -> AcceptanceRecord | None:
        """Set only the confidence score; status is left untouched."""
        sql = """
            UPDATE provider_plan_acceptance
            SET confidence_score = $2, updated_at = $3
            WHERE id = $1
            RETURNING *
        """
        row = await self._db.fetchrow(sql, acceptance_id, score, now)
        return _row_to_acceptance(row) if row else None

    # ── Report logs ─────────────────────────────────────

    async def insert_report(self, entry: ReportLogEntry) -> ReportLogEntry:
        sql = """
            INSERT INTO verification_logs (
                id, provider_npi, plan_id, location_id, acceptance_id,
                verification_type, verification_source, previous_value,
                new_value, notes, evidence_url, submitted_by, source_ip,
                user_agent, upvotes, downvotes, created_at, expires_at
            ) VALUES (
                $1, $2, $3, $4, $5, $6, $7, $8, $9, $10,
                $11, $12, $13, $14, $15, $16, $17, $18
            )
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            entry.id,
            entry.provider_npi,
            entry.plan_id,
            entry.location_id,
            entry.acceptance_id,
            entry.verification_type.value,
            entry.verification_source.value,
            entry.previous_value.to_dict() if entry.previous_value else None,
            entry.new_value.to_dict(),
            entry.notes,
            entry.evidence_url,
            entry.submitted_by,
            entry.source_ip,
            entry.user_agent,
            entry.upvotes,
            entry.downvotes,
            entry.created_at,
            entry.expires_at,
        )
        return _row_to_report(row)

    async def link_report(self, report_id: str, acceptance_id: int) -> None:
        """Back-link a report to the acceptance record it updated."""
        await self._db.execute(
            "UPDATE verification_logs SET acceptance_id = $2 WHERE id = $1",
            report_id,
            acceptance_id,
        )

    async def get_report(self, report_id: str) -> ReportLogEntry | None:
        row = await self._db.fetchrow(
            "SELECT * FROM verification_logs WHERE id = $1", report_id
        )
        return _row_to_report(row) if row else None

    async def adjust_report_votes(
        self,
        report_id: str,
        upvote_delta: int,
        downvote_delta: int,
    ) -> ReportLogEntry | None:
        """Atomically add deltas to a report's vote counters."""
        sql = """
            UPDATE verification_logs
            SET upvotes = upvotes + $2, downvotes = downvotes + $3
            WHERE id = $1
            RETURNING *
        """
        row = await self._db.fetchrow(sql, report_id, upvote_delta, downvote_delta)
        return _row_to_report(row) if row else None

    async def has_recent_report_from_ip(
        self,
        provider_npi: str,
        plan_id: str,
        source_ip: str,
        since: datetime,
        now: datetime,
    ) -> bool:
        sql = f"""
            SELECT EXISTS (
                SELECT 1 FROM verification_logs
                WHERE provider_npi = $1 AND plan_id = $2
                  AND source_ip = $3 AND created_at >= $4
                  AND {_live(5)}
            )
        """
        return bool(await self._db.fetchval(sql, provider_npi, plan_id, source_ip, since, now))

    async def has_recent_report_from_identity(
        self,
        provider_npi: str,
        plan_id: str,
        submitted_by: str,
        since: datetime,
        now: datetime,
    ) -> bool:
        sql = f"""
            SELECT EXISTS (
                SELECT 1 FROM verification_logs
                WHERE provider_npi = $1 AND plan_id = $2
                  AND submitted_by = $3 AND created_at >= $4
                  AND {_live(5)}
            )
        """
        return bool(
            await self._db.fetchval(sql, provider_npi, plan_id, submitted_by, since, now)
        )

    async def count_consensus(
        self,
        provider_npi: str,
        plan_id: str,
        location_id: int | None,
        now: datetime,
    ) -> ConsensusCounts:
        """Tally claimed statuses over live PLAN_ACCEPTANCE reports for a key."""
        sql = f"""
            SELECT
                COUNT(*) FILTER (
                    WHERE new_value->>'acceptance_status' = 'ACCEPTED'
                ) AS accepted,
                COUNT(*) FILTER (
                    WHERE new_value->>'acceptance_status' = 'NOT_ACCEPTED'
                ) AS not_accepted
            FROM verification_logs
            WHERE provider_npi = $1 AND plan_id = $2
              AND location_id IS NOT DISTINCT FROM $3
              AND verification_type = $4
              AND {_live(5)}
        """
        row = await self._db.fetchrow(
            sql,
            provider_npi,
            plan_id,
            location_id,
            VerificationType.PLAN_ACCEPTANCE.value,
            now,
        )
        return ConsensusCounts(
            accepted=row["accepted"] or 0,
            not_accepted=row["not_accepted"] or 0,
        )

    async def sum_votes(
        self,
        provider_npi: str,
        plan_id: str,
        location_id: int | None,
        now: datetime,
    ) -> tuple[int, int]:
        """Sum up/down votes over the live reports of a key."""
        sql = f"""
            SELECT COALESCE(SUM(upvotes), 0) AS upvotes,
                   COALESCE(SUM(downvotes), 0) AS downvotes
            FROM verification_logs
            WHERE provider_npi = $1 AND plan_id = $2
              AND location_id IS NOT DISTINCT FROM $3
              AND {_live(4)}
        """
        row = await self._db.fetchrow(sql, provider_npi, plan_id, location_id, now)
        return int(row["upvotes"]), int(row["downvotes"])

    async def list_reports_for_pair(
        self,
        provider_npi: str,
        plan_id: str,
        location_id: int | None,
        now: datetime,
        *,
        include_expired: bool = False,
        limit: int = 50,
    ) -> list[ReportLogEntry]:
        """Most recent reports for a key, newest first."""
        params: list[Any] = [provider_npi, plan_id, location_id]
        live_clause = ""
        if not include_expired:
            params.append(now)
            live_clause = f"AND {_live(len(params))}"
        params.append(limit)

        sql = f"""
            SELECT * FROM verification_logs
            WHERE provider_npi = $1 AND plan_id = $2
              AND location_id IS NOT DISTINCT FROM $3
              {live_clause}
            ORDER BY created_at DESC
            LIMIT ${len(params)}
        """
        rows = await self._db.fetch(sql, *params)
        return [_row_to_report(row) for row in rows]

    async def pair_summary(
        self,
        provider_npi: str,
        plan_id: str,
        location_id: int | None,
        now: datetime,
        *,
        include_expired: bool = False,
    ) -> PairSummary:
        params: list[Any] = [provider_npi, plan_id, location_id]
        live_clause = ""
        if not include_expired:
            params.append(now)
            live_clause = f"AND {_live(len(params))}"

        sql = f"""
            SELECT
                COUNT(*) AS total_reports,
                COUNT(*) FILTER (
                    WHERE new_value->>'acceptance_status' = 'ACCEPTED'
                ) AS accepted,
                COUNT(*) FILTER (
                    WHERE new_value->>'acceptance_status' = 'NOT_ACCEPTED'
                ) AS not_accepted,
                COALESCE(SUM(upvotes), 0) AS upvotes,
                COALESCE(SUM(downvotes), 0) AS downvotes
            FROM verification_logs
            WHERE provider_npi = $1 AND plan_id = $2
              AND location_id IS NOT DISTINCT FROM $3
              {live_clause}
        """
        row = await self._db.fetchrow(sql, *params)
        return PairSummary(
            total_reports=row["total_reports"],
            accepted=row["accepted"],
            not_accepted=row["not_accepted"],
            upvotes=int(row["upvotes"]),
            downvotes=int(row["downvotes"]),
        )

    async def list_recent_reports(
        self,
        now: datetime,
        *,
        limit: int = 20,
        provider_npi: str | None = None,
        plan_id: str | None = None,
        include_expired: bool = False,
    ) -> list[ReportLogEntry]:
        """Recent reports across all keys with optional filters."""
        conditions: list[str] = []
        params: list[Any] = []
        param_idx = 1

        if provider_npi is not None:
            conditions.append(f"provider_npi = ${param_idx}")
            params.append(provider_npi)
            param_idx += 1

        if plan_id is not None:
            conditions.append(f"plan_id = ${param_idx}")
            params.append(plan_id)
            param_idx += 1

        if not include_expired:
            conditions.append(_live(param_idx))
            params.append(now)
            param_idx += 1

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        sql = f"""
            SELECT * FROM verification_logs
            {where_clause}
            ORDER BY created_at DESC
            LIMIT ${param_idx}
        """
        params.append(limit)
        rows = await self._db.fetch(sql, *params)
        return [_row_to_report(row) for row in rows]

    async def report_stats(self, now: datetime) -> dict[str, Any]:
        """Totals by type and by source plus the last-24h count."""
        totals_sql = """
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE created_at >= $1) AS recent
            FROM verification_logs
        """
        totals = await self._db.fetchrow(totals_sql, now - timedelta(hours=24))
        by_type = await self._db.fetch(
            "SELECT verification_type AS key, COUNT(*) AS count "
            "FROM verification_logs GROUP BY verification_type ORDER BY verification_type"
        )
        by_source = await self._db.fetch(
            "SELECT verification_source AS key, COUNT(*) AS count "
            "FROM verification_logs GROUP BY verification_source ORDER BY verification_source"
        )
        return {
            "total": totals["total"],
            "recent_24h": totals["recent"],
            "by_type": {row["key"]: row["count"] for row in by_type},
            "by_source": {row["key"]: row["count"] for row in by_source},
        }

    # ── Votes ───────────────────────────────────────────

    async def get_vote(self, report_id: str, source_ip: str) -> VoteRecord | None:
        row = await self._db.fetchrow(
            "SELECT * FROM vote_logs WHERE verification_id = $1 AND source_ip = $2",
            report_id,
            source_ip,
        )
        return _row_to_vote(row) if row else None

    async def insert_vote(self, vote: VoteRecord) -> VoteRecord:
        """Insert a vote; raises asyncpg.UniqueViolationError on a duplicate."""
        sql = """
            INSERT INTO vote_logs (id, verification_id, source_ip, vote, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $5)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            vote.id,
            vote.verification_id,
            vote.source_ip,
            vote.vote.value,
            vote.created_at,
        )
        return _row_to_vote(row)

    async def update_vote_direction(
        self,
        vote_id: str,
        direction: VoteDirection,
        now: datetime,
    ) -> None:
        await self._db.execute(
            "UPDATE vote_logs SET vote = $2, updated_at = $3 WHERE id = $1",
            vote_id,
            direction.value,
            now,
        )

    # ── Lifecycle ───────────────────────────────────────

    async def fetch_decay_batch(
        self,
        after_id: int,
        limit: int,
    ) -> list[DecayCandidate]:
        """Keyset page of verified acceptance records joined with provider text."""
        sql = """
            SELECT a.*, p.primary_specialty, p.taxonomy_description
            FROM provider_plan_acceptance a
            LEFT JOIN providers p ON p.npi = a.provider_npi
            WHERE a.verification_count >= 1 AND a.id > $1
            ORDER BY a.id ASC
            LIMIT $2
        """
        rows = await self._db.fetch(sql, after_id, limit)
        return [
            DecayCandidate(
                record=_row_to_acceptance(row),
                primary_specialty=row.get("primary_specialty"),
                taxonomy_description=row.get("taxonomy_description"),
            )
            for row in rows
        ]

    async def count_expired(self, now: datetime) -> tuple[int, int]:
        """Count expired (reports, acceptance records).

        Acceptance records still backed by a live report are excluded since
        cleanup keeps them.
        """
        reports = await self._db.fetchval(
            "SELECT COUNT(*) FROM verification_logs "
            "WHERE expires_at IS NOT NULL AND expires_at <= $1",
            now,
        )
        acceptances = await self._db.fetchval(
            f"""
            SELECT COUNT(*) FROM provider_plan_acceptance a
            WHERE a.expires_at IS NOT NULL AND a.expires_at <= $1
              AND {_NO_LIVE_BACKING}
            """,
            now,
        )
        return int(reports or 0), int(acceptances or 0)

    async def delete_expired_reports(self, now: datetime, limit: int) -> int:
        """Delete up to ``limit`` expired reports; returns rows deleted."""
        sql = """
            DELETE FROM verification_logs
            WHERE id IN (
                SELECT id FROM verification_logs
                WHERE expires_at IS NOT NULL AND expires_at <= $1
                LIMIT $2
            )
            RETURNING id
        """
        rows = await self._db.fetch(sql, now, limit)
        return len(rows)

    async def delete_expired_acceptances(self, now: datetime, limit: int) -> int:
        """Delete up to ``limit`` expired acceptance records with no live report."""
        sql = f"""
            DELETE FROM provider_plan_acceptance
            WHERE id IN (
                SELECT a.id FROM provider_plan_acceptance a
                WHERE a.expires_at IS NOT NULL AND a.expires_at <= $1
                  AND {_NO_LIVE_BACKING}
                LIMIT $2
            )
            RETURNING id
        """
        rows = await self._db.fetch(sql, now, limit)
        return len(rows)

    async def expiration_stats(self, now: datetime) -> dict[str, dict[str, int]]:
        """Per-table TTL breakdown: total, with TTL, expired, expiring soon."""
        stats: dict[str, dict[str, int]] = {}
        for key, table in (
            ("verification_logs", "verification_logs"),
            ("provider_plan_acceptance", "provider_plan_acceptance"),
        ):
            sql = f"""
                SELECT
                    COUNT(*) AS total,
                    COUNT(expires_at) AS with_ttl,
                    COUNT(*) FILTER (WHERE expires_at <= $1) AS expired,
                    COUNT(*) FILTER (
                        WHERE expires_at > $1 AND expires_at <= $2
                    ) AS expiring_within_7_days,
                    COUNT(*) FILTER (
                        WHERE expires_at > $1 AND expires_at <= $3
                    ) AS expiring_within_30_days
                FROM {table}
            """
            row = await self._db.fetchrow(
                sql, now, now + timedelta(days=7), now + timedelta(days=30)
            )
            stats[key] = {
                "total": row["total"],
                "with_ttl": row["with_ttl"],
                "expired": row["expired"],
                "expiring_within_7_days": row["expiring_within_7_days"],
                "expiring_within_30_days": row["expiring_within_30_days"],
            }
        return stats


def _json_field(value: Any) -> dict[str, Any] | None:
    """JSONB arrives decoded via the pool codec; tolerate raw strings too."""
    if value is None:
        return None
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


def _row_to_acceptance(row: Any) -> AcceptanceRecord:
    """Convert an asyncpg Record to an AcceptanceRecord."""
    return AcceptanceRecord(
        id=row["id"],
        provider_npi=row["provider_npi"],
        plan_id=row["plan_id"],
        location_id=row.get("location_id"),
        acceptance_status=AcceptanceStatus(row["acceptance_status"]),
        confidence_score=row["confidence_score"],
        last_verified=row.get("last_verified"),
        verification_count=row["verification_count"],
        verification_source=row.get("verification_source"),
        accepts_new_patients=row.get("accepts_new_patients"),
        expires_at=row.get("expires_at"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_report(row: Any) -> ReportLogEntry:
    """Convert an asyncpg Record to a ReportLogEntry."""
    verification_type = VerificationType(row["verification_type"])
    previous = _json_field(row.get("previous_value"))
    return ReportLogEntry(
        id=row["id"],
        provider_npi=row["provider_npi"],
        plan_id=row["plan_id"],
        location_id=row.get("location_id"),
        acceptance_id=row.get("acceptance_id"),
        verification_type=verification_type,
        verification_source=VerificationSource(row["verification_source"]),
        previous_value=AcceptanceSnapshot.from_dict(previous) if previous else None,
        new_value=parse_report_value(verification_type, _json_field(row["new_value"])),
        notes=row.get("notes"),
        evidence_url=row.get("evidence_url"),
        submitted_by=row.get("submitted_by"),
        source_ip=row.get("source_ip"),
        user_agent=row.get("user_agent"),
        upvotes=row["upvotes"],
        downvotes=row["downvotes"],
        created_at=row["created_at"],
        expires_at=row.get("expires_at"),
    )


def _row_to_vote(row: Any) -> VoteRecord:
    """Convert an asyncpg Record to a VoteRecord."""
    return VoteRecord(
        id=row["id"],
        verification_id=row["verification_id"],
        source_ip=row["source_ip"],
        vote=VoteDirection(row["vote"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
