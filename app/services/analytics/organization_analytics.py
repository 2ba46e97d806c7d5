# ============================================================================
# Organization Analytics Service
# ============================================================================
"""
Organization-scoped dashboard and report figures.

Every operation is a coroutine over the injected session; sub-queries run
one after another on that session. An operation either returns a complete
result or raises an AggregationError.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity import OpportunityStatus
from app.services.analytics.bucketing import Granularity
from app.services.analytics.compliance import ComplianceAggregator
from app.services.analytics.date_ranges import (
    DateRange, end_of_month, previous_period, start_of_month, utcnow,
)
from app.services.analytics.execution import AggregationResult, collect_sections
from app.services.analytics.rates import growth_rate, rate, round1, safe_average
from app.services.analytics.repository import MetricRepository
from app.services.analytics.retention import CohortAnalyzer, range_retention
from app.services.analytics.trends import TrendBuilder

logger = logging.getLogger(__name__)

# (label, lower bound inclusive, upper bound exclusive)
HOUR_BANDS = (
    ("0-10 hours", 0, 10),
    ("10-25 hours", 10, 25),
    ("25-50 hours", 25, 50),
    ("50-100 hours", 50, 100),
    ("100+ hours", 100, None),
)


def _hour_band(hours: float) -> str:
    for label, low, high in HOUR_BANDS:
        if high is None or low <= hours < high:
            return label
    return HOUR_BANDS[-1][0]


def shift_months(date_range: DateRange, months: int) -> DateRange:
    return DateRange(
        date_range.start - relativedelta(months=months),
        date_range.end - relativedelta(months=months),
        empty=date_range.empty,
    )


class OrganizationAnalyticsService:
    """Analytics for a single organization"""

    def __init__(self, db: AsyncSession, now: Optional[datetime] = None):
        self.db = db
        self.now = now or utcnow()
        self.repository = MetricRepository(db)
        self.compliance = ComplianceAggregator(self.repository, self.now)
        self.trends = TrendBuilder(self.repository, self.now)
        self.cohorts = CohortAnalyzer(self.repository, self.now)

    # =========================================================================
    # OVERVIEW
    # =========================================================================
    async def get_overview_stats(self, organization_id: int, date_range: DateRange) -> Dict[str, Any]:
        """Headline counts for the organization dashboard"""
        repo = self.repository

        total_members = await repo.count_members(organization_id)
        active_members = await repo.count_active_volunteers(organization_id)
        new_members = await repo.count_members_joined(organization_id, date_range)

        total_hours, _ = await repo.approved_hours_stats(organization_id=organization_id)
        period_hours, active_in_period = await repo.approved_hours_stats(date_range, organization_id)

        by_status = await repo.applications_by_status(organization_id)
        by_method = await repo.attendances_by_method(organization_id)

        return {
            "volunteers": {
                "total": total_members,
                "active": active_members,
                "new_in_period": new_members,
                "active_in_period": active_in_period,
            },
            "hours": {
                "total": round1(total_hours),
                "in_period": round1(period_hours),
                "average_per_active_volunteer": safe_average(period_hours, active_in_period),
            },
            "opportunities": {
                "total": await repo.count_opportunities(organization_id),
                "in_period": await repo.count_opportunities(organization_id, date_range),
                "completed": await repo.count_opportunities(
                    organization_id, date_range, ended_before=self.now
                ),
                "published": await repo.count_opportunities(
                    organization_id, status=OpportunityStatus.PUBLISHED
                ),
                "upcoming": await repo.count_opportunities(
                    organization_id, status=OpportunityStatus.PUBLISHED, starting_after=self.now
                ),
            },
            "applications": {
                "total": sum(by_status.values()),
                "by_status": by_status,
            },
            "attendances": {
                "total": sum(by_method.values()),
                "by_method": by_method,
            },
            "teams": {
                "total": await repo.count_teams(organization_id),
            },
            "compliance_rate": await self.compliance.overall(organization_id),
        }

    # =========================================================================
    # TRENDS
    # =========================================================================
    async def get_hours_trend(
        self,
        organization_id: int,
        date_range: DateRange,
        group_by: Granularity = Granularity.MONTH,
    ) -> List[Dict[str, Any]]:
        return await self.trends.hours_trend(organization_id, date_range, group_by)

    async def get_monthly_hours_trend(self, organization_id: int, month_count: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self.trends.monthly_hours_trend(organization_id, month_count)

    # =========================================================================
    # PARTICIPATION
    # =========================================================================
    async def get_volunteer_participation(self, organization_id: int, date_range: DateRange) -> Dict[str, Any]:
        """Active versus inactive members and how hours are spread among them"""
        repo = self.repository

        total = await repo.count_active_volunteers(organization_id)
        _, active = await repo.approved_hours_stats(date_range, organization_id)
        _, previously_active = await repo.approved_hours_stats(previous_period(date_range), organization_id)
        new = await repo.count_members_joined(organization_id, date_range)

        distribution = {label: 0 for label, _, _ in HOUR_BANDS}
        for hours in (await repo.hours_by_user(date_range, organization_id)).values():
            distribution[_hour_band(hours)] += 1

        return {
            "total": total,
            "active": active,
            "inactive": max(total - active, 0),
            "new": new,
            "participation_rate": rate(active, total),
            "trend": growth_rate(active, previously_active),
            "volunteers_by_hours": [
                {"range": label, "count": count} for label, count in distribution.items()
            ],
        }

    # =========================================================================
    # EVENTS
    # =========================================================================
    async def get_event_performance(self, organization_id: int, date_range: DateRange, limit: int = 20) -> List[Dict[str, Any]]:
        """Opportunities in the range, newest first, with fill and show-up rates"""
        rows = await self.repository.event_performance_rows(organization_id, date_range, limit)

        events = []
        for position, row in enumerate(rows, 1):
            registered = int(row.registered or 0)
            attended = int(row.attended or 0)
            capacity = int(row.capacity or 0)
            events.append({
                "rank": position,
                "opportunity_id": row.id,
                "title": row.title,
                "date": row.start_at.isoformat() if row.start_at else None,
                "status": row.status.value if row.status else None,
                "capacity": capacity,
                "registered": registered,
                "attended": attended,
                "total_hours": round1(float(row.total_hours or 0)),
                "fill_rate": rate(registered, capacity),
                "show_up_rate": rate(attended, registered),
            })
        return events

    # =========================================================================
    # COMPLIANCE
    # =========================================================================
    async def get_compliance_status(self, organization_id: int) -> Dict[str, Any]:
        return await self.compliance.status(organization_id)

    # =========================================================================
    # ENGAGEMENT
    # =========================================================================
    async def get_engagement_metrics(self, organization_id: int, date_range: DateRange) -> Dict[str, Any]:
        """
        Averages, retention and growth for the range.

        Retention counts volunteers with approved hours in the first calendar
        month of the range who also logged hours from the start of its last
        month onwards. Growth compares active volunteers against the same
        range one month earlier.
        """
        repo = self.repository

        hours, active = await repo.approved_hours_stats(date_range, organization_id)
        attendances, attendees = await repo.present_attendance_stats(organization_id, date_range)
        _, previously_active = await repo.approved_hours_stats(shift_months(date_range, 1), organization_id)

        monthly_active = await repo.users_with_approved_hours(
            start_of_month(self.now).date(), organization_id=organization_id
        )

        retention = 100.0
        if not date_range.empty:
            first_month = await repo.users_with_approved_hours(
                start_of_month(date_range.start).date(),
                end_of_month(date_range.start).date(),
                organization_id=organization_id,
            )
            retained = await repo.users_with_approved_hours(
                start_of_month(date_range.end).date(),
                organization_id=organization_id,
                user_ids=first_month,
            )
            retention = range_retention(first_month, retained)

        return {
            "retention_rate": retention,
            "average_hours_per_volunteer": safe_average(hours, active),
            "average_events_per_volunteer": safe_average(attendances, attendees),
            "monthly_active_volunteers": len(monthly_active),
            "volunteer_growth_rate": growth_rate(active, previously_active),
        }

    # =========================================================================
    # LEADERBOARD & RETENTION
    # =========================================================================
    async def get_top_volunteers(self, organization_id: int, date_range: DateRange, limit: int = 10) -> List[Dict[str, Any]]:
        return await self.trends.top_volunteers(organization_id, date_range, limit)

    async def get_volunteer_retention(self, organization_id: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self.cohorts.cohorts(organization_id, limit)

    # =========================================================================
    # DASHBOARD
    # =========================================================================
    async def get_dashboard(self, organization_id: int, date_range: DateRange) -> Dict[str, AggregationResult]:
        """All dashboard sections, each reported as its own success or failure"""
        return await collect_sections({
            "overview": lambda: self.get_overview_stats(organization_id, date_range),
            "hours_trend": lambda: self.get_monthly_hours_trend(organization_id),
            "participation": lambda: self.get_volunteer_participation(organization_id, date_range),
            "compliance": lambda: self.get_compliance_status(organization_id),
            "top_volunteers": lambda: self.get_top_volunteers(organization_id, date_range, 5),
        })
