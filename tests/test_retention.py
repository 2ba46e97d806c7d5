# ============================================================================
# Cohort / Retention Tests
# ============================================================================
from datetime import datetime, timedelta

import pytest

from app.models import HourStatus, MembershipStatus
from app.services.analytics.repository import MetricRepository
from app.services.analytics.retention import CohortAnalyzer, range_retention

NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def analyzer(db_session):
    return CohortAnalyzer(MetricRepository(db_session), now=NOW)


class TestCohorts:
    """Tests for join-month cohorts measured against recent activity"""

    async def test_january_cohort_with_three_active(self, factory, analyzer):
        org = await factory.organization()
        members = await factory.volunteers(org, 10, joined_at=datetime(2024, 1, 10))
        for member in members[:3]:
            await factory.hours(member, (NOW - timedelta(days=5)).date(), 2, organization=org)

        cohorts = await analyzer.cohorts(org.id)

        assert cohorts == [{
            "month": "2024-01-01",
            "cohort_size": 10,
            "still_active": 3,
            "retention_rate": 30.0,
        }]

    async def test_created_at_used_when_join_date_missing(self, factory, analyzer):
        org = await factory.organization()
        await factory.volunteers(org, 2, joined_at=None, created_at=datetime(2024, 3, 20))

        [cohort] = await analyzer.cohorts(org.id)
        assert cohort["month"] == "2024-03-01"
        assert cohort["cohort_size"] == 2

    async def test_activity_is_relative_to_now(self, factory, analyzer):
        org = await factory.organization()
        recent, lapsed, pending = await factory.volunteers(org, 3, joined_at=datetime(2024, 2, 1))
        await factory.hours(recent, (NOW - timedelta(days=29)).date(), organization=org)
        # Active shortly after joining but not in the last 30 days
        await factory.hours(lapsed, datetime(2024, 2, 10).date(), organization=org)
        await factory.hours(pending, (NOW - timedelta(days=1)).date(), organization=org,
                            status=HourStatus.PENDING)

        [cohort] = await analyzer.cohorts(org.id)
        assert cohort["still_active"] == 1
        assert cohort["retention_rate"] == 33.3

    async def test_membership_status_is_not_filtered(self, factory, analyzer):
        org = await factory.organization()
        await factory.volunteers(org, 1, joined_at=datetime(2024, 4, 2))
        await factory.volunteers(org, 1, joined_at=datetime(2024, 4, 3), status=MembershipStatus.SUSPENDED)

        [cohort] = await analyzer.cohorts(org.id)
        assert cohort["cohort_size"] == 2

    async def test_newest_first_and_limited(self, factory, analyzer):
        org = await factory.organization()
        for month in (1, 2, 3, 4):
            await factory.volunteers(org, 1, joined_at=datetime(2024, month, 15))

        cohorts = await analyzer.cohorts(org.id, limit=2)
        assert [c["month"] for c in cohorts] == ["2024-04-01", "2024-03-01"]

    async def test_no_members(self, factory, analyzer):
        org = await factory.organization()
        assert await analyzer.cohorts(org.id) == []

    async def test_active_never_exceeds_size(self, factory, analyzer):
        org = await factory.organization()
        [member] = await factory.volunteers(org, 1, joined_at=datetime(2024, 5, 1))
        for days in (1, 2, 3):
            await factory.hours(member, (NOW - timedelta(days=days)).date(), organization=org)

        [cohort] = await analyzer.cohorts(org.id)
        assert cohort["still_active"] == cohort["cohort_size"] == 1
        assert cohort["retention_rate"] == 100.0


class TestRangeRetention:
    def test_share_of_first_month_retained(self):
        assert range_retention({1, 2, 3, 4}, {2, 4, 9}) == 50.0

    def test_empty_first_month(self):
        assert range_retention(set(), {1}) == 100.0
