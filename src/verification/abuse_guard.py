"""Duplicate-submission checks for crowd reports.

Two independent cooldown checks over the same lookback window: one keyed
on the submitter's network address, one on the submitter's identity. Both
run when both values are present. Only live reports count, so a report
that has expired no longer blocks its submitter.

The guard reads through whatever repository it is handed so that, inside
a submission, the checks see the same locked transaction as the insert.
"""

import logging
from datetime import datetime, timedelta

from src.verification.config import VerificationConfig
from src.verification.errors import ConflictError
from src.verification.repository import VerificationRepository

logger = logging.getLogger(__name__)


class DuplicateSubmissionError(ConflictError):
    """Same submitter already reported this provider/plan pair recently."""

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


class AbuseGuard:
    """Sybil-window enforcement for report submissions."""

    def __init__(self, config: VerificationConfig | None = None) -> None:
        self._config = config or VerificationConfig()

    @property
    def window(self) -> timedelta:
        return timedelta(days=self._config.sybil_window_days)

    async def check(
        self,
        repo: VerificationRepository,
        provider_npi: str,
        plan_id: str,
        *,
        source_ip: str | None,
        submitted_by: str | None,
        now: datetime,
    ) -> None:
        """Raise DuplicateSubmissionError when either cooldown is violated.

        Args:
            repo: Repository (usually transaction-bound) to query.
            provider_npi: Provider being reported on.
            plan_id: Plan being reported on.
            source_ip: Submitter network address, if known.
            submitted_by: Submitter identity (e.g. email), if known.
            now: Reference time for the window and liveness.
        """
        since = now - self.window
        days = self._config.sybil_window_days

        if source_ip and await repo.has_recent_report_from_ip(
            provider_npi, plan_id, source_ip, since, now
        ):
            logger.info("Duplicate submission by address for %s/%s", provider_npi, plan_id)
            raise DuplicateSubmissionError(
                "You have already submitted a verification for this provider-plan pair "
                f"within the last {days} days.",
                reason="duplicate_ip",
            )

        if submitted_by and await repo.has_recent_report_from_identity(
            provider_npi, plan_id, submitted_by, since, now
        ):
            logger.info("Duplicate submission by identity for %s/%s", provider_npi, plan_id)
            raise DuplicateSubmissionError(
                "This account has already submitted a verification for this provider-plan "
                f"pair within the last {days} days.",
                reason="duplicate_identity",
            )
