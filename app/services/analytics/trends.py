# ============================================================================
# Trend & Leaderboard Builder
# ============================================================================
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.config import get_settings
from app.services.analytics.bucketing import (
    Granularity, TimedValue, bucket_rows, fixed_window_range, parse_granularity,
)
from app.services.analytics.date_ranges import DateRange, utcnow
from app.services.analytics.rates import as_number, round1
from app.services.analytics.repository import MetricRepository

settings = get_settings()


def assign_ranks(items: List[Dict[str, Any]], key: str) -> List[Dict[str, Any]]:
    """Sort descending by ``key`` and number 1..n; ties keep their input order"""
    ranked = sorted(items, key=lambda item: item[key], reverse=True)
    for rank, item in enumerate(ranked, 1):
        item["rank"] = rank
    return ranked


class TrendBuilder:
    """Zero-filled time series and top-N lists"""

    def __init__(self, repository: MetricRepository, now: Optional[datetime] = None):
        self.repository = repository
        self.now = now or utcnow()

    # =========================================================================
    # Hours
    # =========================================================================
    async def hours_trend(
        self,
        organization_id: int,
        date_range: DateRange,
        granularity: Granularity = Granularity.MONTH,
    ) -> List[Dict[str, Any]]:
        """Approved hours of an organization bucketed over the requested range"""
        granularity = parse_granularity(granularity)
        rows = await self.repository.approved_hour_rows(date_range, organization_id)
        return self._hours_series(bucket_rows(date_range, granularity, rows))

    async def monthly_hours_trend(self, organization_id: int, month_count: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Approved hours over the last ``month_count`` calendar months.

        Always covers whole months ending with the current one and ignores
        any requested date range.
        """
        window = fixed_window_range(month_count or settings.HOURS_TREND_WINDOW_MONTHS, self.now)
        rows = await self.repository.approved_hour_rows(window, organization_id)
        return self._hours_series(bucket_rows(window, Granularity.MONTH, rows))

    @staticmethod
    def _hours_series(buckets) -> List[Dict[str, Any]]:
        return [
            {
                "period": bucket.period,
                "total_hours": round1(bucket.total),
                "volunteer_count": bucket.distinct_count,
                "log_count": bucket.count,
            }
            for bucket in buckets
        ]

    async def volunteer_hours_trend(self, date_range: DateRange) -> List[Dict[str, Any]]:
        """Platform-wide approved hours per day"""
        rows = await self.repository.approved_hour_rows(date_range)
        return [
            {"date": bucket.period, "count": round1(bucket.total)}
            for bucket in bucket_rows(date_range, Granularity.DAY, rows)
        ]

    # =========================================================================
    # Growth
    # =========================================================================
    async def growth_trend(self, column, date_range: DateRange, metric: str) -> List[Dict[str, Any]]:
        """New rows per day, keyed on a creation timestamp column"""
        created = await self.repository.creation_times(column, date_range, metric)
        rows = [TimedValue(timestamp=moment) for moment in created]
        return [
            {"date": bucket.period, "count": bucket.count}
            for bucket in bucket_rows(date_range, Granularity.DAY, rows)
        ]

    # =========================================================================
    # Leaderboards
    # =========================================================================
    async def top_organizations(self, limit: int = 10) -> List[Dict[str, Any]]:
        rows = await self.repository.top_organization_rows(limit)
        organizations = [
            {
                "id": row.id,
                "name": row.name,
                "total_hours": round1(as_number(row.total_hours)),
                "total_volunteers": int(row.total_volunteers or 0),
                "total_opportunities": int(row.total_opportunities or 0),
            }
            for row in rows
        ]
        return assign_ranks(organizations, "total_hours")

    async def top_volunteers(self, organization_id: int, date_range: DateRange, limit: int = 10) -> List[Dict[str, Any]]:
        """Active members with the most approved hours in the range"""
        rows = await self.repository.top_volunteer_rows(organization_id, date_range, limit)
        events = await self.repository.present_attendance_by_user(
            organization_id, date_range, [row.user_id for row in rows]
        )

        volunteers = [
            {
                "user_id": row.user_id,
                "name": f"{row.first_name or ''} {row.last_name or ''}".strip(),
                "email": row.email,
                "total_hours": round1(as_number(row.total_hours)),
                "log_count": int(row.log_count or 0),
                "total_events": events.get(row.user_id, 0),
            }
            for row in rows
        ]
        return assign_ranks(volunteers, "total_hours")
