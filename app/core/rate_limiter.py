"""Rate limits for embedding refresh runs.

Two independent limits over a trailing window (24h by default), both counted
from the refresh log rather than held in memory:

- per user: number of refresh runs by (organization, user)
- per organization: total documents processed by all runs

The check reads the log and the caller writes a row after the run, so two
concurrent refreshes can both pass the check (count-then-act). That race is
accepted; the per-run document budget still bounds each run.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

from app.core.config import Settings, get_settings
from app.core.errors import RateLimitedError
from app.core.logging import get_logger
from app.core.schemas_retrieval import RateLimitStatus
from app.db.stores import RefreshLog

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshRateLimiter:
    """Checks refresh runs against the per-user and per-organization limits."""

    def __init__(
        self,
        refresh_log: RefreshLog,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            refresh_log: Log of past refresh runs
            settings: Limits and window (defaults to get_settings())
            clock: Current-time source
        """
        self.refresh_log = refresh_log
        self.settings = settings or get_settings()
        self.clock = clock

    @property
    def max_user_refreshes(self) -> int:
        return self.settings.REFRESH_MAX_PER_USER_PER_DAY

    @property
    def max_org_documents(self) -> int:
        return self.settings.REFRESH_MAX_DOCS_PER_ORG_PER_DAY

    def window_start(self) -> datetime:
        return self.clock() - timedelta(hours=self.settings.REFRESH_WINDOW_HOURS)

    def get_status(self, organization_id: str, user_id: str) -> RateLimitStatus:
        """
        Current usage and remaining budget of both limits.

        Args:
            organization_id: Organization scope
            user_id: Requesting user

        Returns:
            RateLimitStatus (remaining values never go below 0)
        """
        since = self.window_start()
        user_used = self.refresh_log.count_since(organization_id, user_id, since)
        org_used = self.refresh_log.sum_docs_since(organization_id, since)

        return RateLimitStatus(
            user_refreshes_used=user_used,
            user_refreshes_remaining=max(0, self.max_user_refreshes - user_used),
            org_documents_used=org_used,
            org_documents_remaining=max(0, self.max_org_documents - org_used),
        )

    def check(self, organization_id: str, user_id: str) -> RateLimitStatus:
        """
        Check both limits before a refresh run.

        Returns:
            Status at check time (its org_documents_remaining is the run's budget)

        Raises:
            RateLimitedError: If either limit is exhausted
        """
        status = self.get_status(organization_id, user_id)

        if status.user_refreshes_used >= self.max_user_refreshes:
            logger.warning(
                f"Refresh rate limit exceeded for user {user_id}: "
                f"{status.user_refreshes_used}/{self.max_user_refreshes}"
            )
            raise RateLimitedError(
                "user", status.user_refreshes_used, self.max_user_refreshes, status
            )

        if status.org_documents_used >= self.max_org_documents:
            logger.warning(
                f"Refresh document limit exceeded for organization {organization_id}: "
                f"{status.org_documents_used}/{self.max_org_documents}"
            )
            raise RateLimitedError(
                "organization", status.org_documents_used, self.max_org_documents, status
            )

        return status
