# ============================================================================
# Cohort / Retention Analyzer
# ============================================================================
"""
Join-month cohorts and how many of their members are still active.

"Still active" is measured relative to now: a member counts when they have an
approved hour log inside the trailing activity window, however long ago the
cohort joined.
"""
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set

from app.config import get_settings
from app.services.analytics.date_ranges import utcnow
from app.services.analytics.rates import rate
from app.services.analytics.repository import MetricRepository

settings = get_settings()


class CohortAnalyzer:
    def __init__(self, repository: MetricRepository, now: Optional[datetime] = None):
        self.repository = repository
        self.now = now or utcnow()

    async def cohorts(self, organization_id: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Most recent join-month cohorts of an organization, newest first.

        Returns:
            List of {month, cohort_size, still_active, retention_rate} where
            month is the first day of the cohort month (``YYYY-MM-01``)
        """
        limit = limit or settings.RETENTION_COHORT_LIMIT

        members: Dict[str, Set[int]] = defaultdict(set)
        for user_id, joined_on in await self.repository.membership_join_dates(organization_id):
            if joined_on is None:
                continue
            members[joined_on.strftime("%Y-%m-01")].add(user_id)

        months = sorted(members, reverse=True)[:limit]
        if not months:
            return []

        cohort_users = set().union(*(members[month] for month in months))
        since = (self.now - timedelta(days=settings.RETENTION_ACTIVITY_WINDOW_DAYS)).date()
        active = await self.repository.users_with_approved_hours(since, user_ids=cohort_users)

        results = []
        for month in months:
            size = len(members[month])
            still_active = len(members[month] & active)
            results.append({
                "month": month,
                "cohort_size": size,
                "still_active": still_active,
                "retention_rate": rate(still_active, size),
            })
        return results


def range_retention(first_month_users: Set[Any], retained: Set[Any]) -> float:
    """Share of first-month users who are also active at the end of the range"""
    return rate(len(first_month_users & retained), len(first_month_users))
