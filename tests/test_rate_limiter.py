"""Tests for embedding refresh rate limits."""

import pytest

from app.core.errors import RateLimitedError
from app.core.rate_limiter import RefreshRateLimiter
from tests.fakes.fake_db import NOW, ORG_ID, OTHER_ORG_ID, USER_ID, fixed_clock, make_settings


@pytest.fixture
def limiter(refresh_log, settings):
    return RefreshRateLimiter(refresh_log, settings, clock=fixed_clock())


def test_status_with_empty_log(limiter):
    status = limiter.get_status(ORG_ID, USER_ID)

    assert status.user_refreshes_used == 0
    assert status.user_refreshes_remaining == 3
    assert status.org_documents_used == 0
    assert status.org_documents_remaining == 500


def test_status_counts_only_the_trailing_window(limiter, refresh_log):
    refresh_log.add(documents_processed=40, hours_ago=2)
    refresh_log.add(documents_processed=10, hours_ago=23.5)
    refresh_log.add(documents_processed=300, hours_ago=25)

    status = limiter.get_status(ORG_ID, USER_ID)

    assert status.user_refreshes_used == 2
    assert status.user_refreshes_remaining == 1
    assert status.org_documents_used == 50
    assert status.org_documents_remaining == 450


def test_org_documents_count_every_user(limiter, refresh_log):
    refresh_log.add(user_id="someone-else", documents_processed=120)
    refresh_log.add(documents_processed=30, organization_id=OTHER_ORG_ID)

    status = limiter.get_status(ORG_ID, USER_ID)

    assert status.user_refreshes_used == 0
    assert status.org_documents_used == 120


def test_window_start(limiter):
    assert (NOW - limiter.window_start()).total_seconds() == 24 * 3600


def test_check_passes_under_limits(limiter, refresh_log):
    refresh_log.add(documents_processed=5)
    status = limiter.check(ORG_ID, USER_ID)
    assert status.org_documents_remaining == 495


def test_user_limit(limiter, refresh_log):
    for _ in range(3):
        refresh_log.add(documents_processed=1)

    with pytest.raises(RateLimitedError) as exc_info:
        limiter.check(ORG_ID, USER_ID)

    error = exc_info.value
    assert error.limit == "user"
    assert error.used == 3
    assert error.maximum == 3
    assert error.status.user_refreshes_remaining == 0
    assert str(error) == "Refresh limit reached: 3/3 refreshes in the last 24 hours"


def test_organization_limit(limiter, refresh_log):
    refresh_log.add(user_id="admin-a", documents_processed=300)
    refresh_log.add(user_id="admin-b", documents_processed=200)

    with pytest.raises(RateLimitedError) as exc_info:
        limiter.check(ORG_ID, USER_ID)

    assert exc_info.value.limit == "organization"
    assert exc_info.value.status.org_documents_remaining == 0
    assert "Document limit reached: 500/500" in str(exc_info.value)


def test_remaining_never_negative(limiter, refresh_log):
    refresh_log.add(documents_processed=650)
    assert limiter.get_status(ORG_ID, USER_ID).org_documents_remaining == 0


def test_limits_from_settings(refresh_log):
    limiter = RefreshRateLimiter(
        refresh_log, make_settings(REFRESH_MAX_PER_USER_PER_DAY=1), clock=fixed_clock()
    )
    refresh_log.add()

    with pytest.raises(RateLimitedError):
        limiter.check(ORG_ID, USER_ID)


def test_concurrent_checks_both_pass(limiter, refresh_log):
    """Count-then-act: two checks before either run is logged both succeed."""
    refresh_log.add()
    refresh_log.add()

    first = limiter.check(ORG_ID, USER_ID)
    second = limiter.check(ORG_ID, USER_ID)

    assert first.user_refreshes_remaining == second.user_refreshes_remaining == 1
