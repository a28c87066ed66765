"""In-memory fakes for verification service tests."""

from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

import pytest

from src.providers.schemas import InsurancePlan, Provider
from src.verification.config import VerificationConfig
from src.verification.schemas import (
    AcceptanceRecord,
    AcceptanceStatus,
    ConsensusCounts,
    PairSummary,
    ReportLogEntry,
    VoteDirection,
    VoteRecord,
    is_live,
)
from src.verification.service import VerificationService
from src.verification.votes import VoteLedger


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: Any) -> None:
        self.current += timedelta(**kwargs)


class FakeProviderRepository:
    """Dict-backed provider lookup."""

    def __init__(self, providers: list[Provider], plans: list[InsurancePlan]) -> None:
        self.providers = {p.npi: p for p in providers}
        self.plans = {p.plan_id: p for p in plans}

    async def get_provider(self, npi: str) -> Provider | None:
        return self.providers.get(npi)

    async def get_plan(self, plan_id: str) -> InsurancePlan | None:
        return self.plans.get(plan_id)


class FakeVerificationRepository:
    """In-memory stand-in for VerificationRepository.

    ``transaction()`` yields the repository itself and records lock keys.
    Rows are copied on the way in and out, the way a database would.
    """

    def __init__(self) -> None:
        self.acceptances: dict[int, AcceptanceRecord] = {}
        self.reports: dict[str, ReportLogEntry] = {}
        self.votes: dict[tuple[str, str], VoteRecord] = {}
        self.lock_keys: list[str] = []
        self._next_id = 1

    @asynccontextmanager
    async def transaction(self, lock_key: str | None = None):
        if lock_key is not None:
            self.lock_keys.append(lock_key)
        yield self

    # Acceptance records

    def _find_acceptance(self, npi, plan_id, location_id) -> AcceptanceRecord | None:
        for record in self.acceptances.values():
            if (record.provider_npi, record.plan_id, record.location_id) == (
                npi,
                plan_id,
                location_id,
            ):
                return record
        return None

    async def get_acceptance(self, npi, plan_id, location_id=None):
        record = self._find_acceptance(npi, plan_id, location_id)
        return replace(record) if record else None

    async def get_acceptance_by_id(self, acceptance_id):
        record = self.acceptances.get(acceptance_id)
        return replace(record) if record else None

    async def insert_acceptance(self, record):
        stored = replace(record, id=self._next_id)
        self._next_id += 1
        self.acceptances[stored.id] = stored
        return replace(stored)

    async def update_acceptance(self, record):
        self.acceptances[record.id] = replace(record)
        return replace(record)

    async def update_confidence_score(self, acceptance_id, score, now):
        record = self.acceptances.get(acceptance_id)
        if record is None:
            return None
        record.confidence_score = score
        record.updated_at = now
        return replace(record)

    # Reports

    async def insert_report(self, entry):
        self.reports[entry.id] = replace(entry)
        return replace(entry)

    async def link_report(self, report_id, acceptance_id):
        self.reports[report_id].acceptance_id = acceptance_id

    async def get_report(self, report_id):
        report = self.reports.get(report_id)
        return replace(report) if report else None

    async def adjust_report_votes(self, report_id, upvote_delta, downvote_delta):
        report = self.reports.get(report_id)
        if report is None:
            return None
        report.upvotes += upvote_delta
        report.downvotes += downvote_delta
        return replace(report)

    def _live_reports(self, npi, plan_id, now, location_id=..., include_expired=False):
        for report in self.reports.values():
            if report.provider_npi != npi or report.plan_id != plan_id:
                continue
            if location_id is not ... and report.location_id != location_id:
                continue
            if not include_expired and not is_live(report.expires_at, now):
                continue
            yield report

    async def has_recent_report_from_ip(self, npi, plan_id, source_ip, since, now):
        return any(
            r.source_ip == source_ip and r.created_at >= since
            for r in self._live_reports(npi, plan_id, now)
        )

    async def has_recent_report_from_identity(self, npi, plan_id, submitted_by, since, now):
        return any(
            r.submitted_by == submitted_by and r.created_at >= since
            for r in self._live_reports(npi, plan_id, now)
        )

    async def count_consensus(self, npi, plan_id, location_id, now):
        counts = ConsensusCounts()
        for report in self._live_reports(npi, plan_id, now, location_id):
            if report.claimed_status == AcceptanceStatus.ACCEPTED:
                counts.accepted += 1
            elif report.claimed_status == AcceptanceStatus.NOT_ACCEPTED:
                counts.not_accepted += 1
        return counts

    async def sum_votes(self, npi, plan_id, location_id, now):
        reports = list(self._live_reports(npi, plan_id, now, location_id))
        return sum(r.upvotes for r in reports), sum(r.downvotes for r in reports)

    async def list_reports_for_pair(
        self, npi, plan_id, location_id, now, *, include_expired=False, limit=50
    ):
        reports = sorted(
            self._live_reports(npi, plan_id, now, location_id, include_expired),
            key=lambda r: r.created_at,
            reverse=True,
        )
        return [replace(r) for r in reports[:limit]]

    async def pair_summary(self, npi, plan_id, location_id, now, *, include_expired=False):
        summary = PairSummary()
        for report in self._live_reports(npi, plan_id, now, location_id, include_expired):
            summary.total_reports += 1
            if report.claimed_status == AcceptanceStatus.ACCEPTED:
                summary.accepted += 1
            else:
                summary.not_accepted += 1
            summary.upvotes += report.upvotes
            summary.downvotes += report.downvotes
        return summary

    async def list_recent_reports(
        self, now, *, limit=20, provider_npi=None, plan_id=None, include_expired=False
    ):
        reports = [
            r
            for r in self.reports.values()
            if (provider_npi is None or r.provider_npi == provider_npi)
            and (plan_id is None or r.plan_id == plan_id)
            and (include_expired or is_live(r.expires_at, now))
        ]
        reports.sort(key=lambda r: r.created_at, reverse=True)
        return [replace(r) for r in reports[:limit]]

    async def report_stats(self, now):
        by_source: dict[str, int] = {}
        for report in self.reports.values():
            key = report.verification_source.value
            by_source[key] = by_source.get(key, 0) + 1
        return {
            "total": len(self.reports),
            "recent_24h": sum(
                1 for r in self.reports.values() if r.created_at >= now - timedelta(hours=24)
            ),
            "by_type": {"PLAN_ACCEPTANCE": len(self.reports)} if self.reports else {},
            "by_source": by_source,
        }

    # Expiry

    def _expired_reports(self, now):
        return [r for r in self.reports.values() if r.expires_at is not None and r.expires_at <= now]

    def _expired_acceptances(self, now):
        return [
            a
            for a in self.acceptances.values()
            if a.expires_at is not None
            and a.expires_at <= now
            and not any(self._live_reports(a.provider_npi, a.plan_id, now, a.location_id))
        ]

    async def count_expired(self, now):
        return len(self._expired_reports(now)), len(self._expired_acceptances(now))

    async def delete_expired_reports(self, now, limit):
        doomed = self._expired_reports(now)[:limit]
        for report in doomed:
            del self.reports[report.id]
            for key in [k for k in self.votes if k[0] == report.id]:
                del self.votes[key]
        return len(doomed)

    async def delete_expired_acceptances(self, now, limit):
        doomed = self._expired_acceptances(now)[:limit]
        for record in doomed:
            del self.acceptances[record.id]
            for report in self.reports.values():
                if report.acceptance_id == record.id:
                    report.acceptance_id = None
        return len(doomed)

    # Votes

    async def get_vote(self, report_id, source_ip):
        vote = self.votes.get((report_id, source_ip))
        return replace(vote) if vote else None

    async def insert_vote(self, vote):
        self.votes[(vote.verification_id, vote.source_ip)] = replace(vote)
        return replace(vote)

    async def update_vote_direction(self, vote_id, direction: VoteDirection, now):
        for vote in self.votes.values():
            if vote.id == vote_id:
                vote.vote = direction
                vote.updated_at = now


@pytest.fixture
def clock(now) -> FakeClock:
    return FakeClock(now)


@pytest.fixture
def fake_repo() -> FakeVerificationRepository:
    return FakeVerificationRepository()


@pytest.fixture
def fake_providers(sample_provider, sample_plan) -> FakeProviderRepository:
    return FakeProviderRepository([sample_provider], [sample_plan])


@pytest.fixture
def service(fake_repo, fake_providers, clock, confidence_service) -> VerificationService:
    return VerificationService(
        fake_repo,
        fake_providers,
        config=VerificationConfig(),
        confidence=confidence_service,
        clock=clock,
    )


@pytest.fixture
def ledger(fake_repo, fake_providers, clock, confidence_service) -> VoteLedger:
    return VoteLedger(
        fake_repo,
        fake_providers,
        confidence=confidence_service,
        clock=clock,
    )
