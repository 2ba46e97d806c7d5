# ============================================================================
# Admin Analytics Service
# ============================================================================
"""
Service layer for platform-wide analytics.
Provides overview counts, growth trends, compliance, leaderboards,
engagement metrics and the historical snapshot archive.
"""
from typing import Dict, List, Optional, Any
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, date
import logging

from app.models.user import User
from app.models.organization import Organization, OrganizationStatus
from app.services.analytics.compliance import ComplianceAggregator
from app.services.analytics.date_ranges import DateRange, end_of_month, start_of_month, utcnow
from app.services.analytics.rates import rate, round1, safe_average
from app.services.analytics.repository import MetricRepository
from app.services.analytics.retention import range_retention
from app.services.analytics.snapshots import SnapshotStore
from app.services.analytics.trends import TrendBuilder

logger = logging.getLogger(__name__)


class AdminAnalyticsService:
    """
    Platform analytics for the admin dashboard.

    Provides:
    - Overview counts (users, organizations, hours, opportunities)
    - Daily growth trends for users, organizations and hours
    - Platform compliance rates
    - Top organizations leaderboard
    - Engagement metrics (averages, retention, monthly actives)
    - Metric snapshots for historical charts
    """

    def __init__(self, db: AsyncSession, now: Optional[datetime] = None):
        self.db = db
        self.now = now or utcnow()
        self.repository = MetricRepository(db)
        self.compliance = ComplianceAggregator(self.repository, self.now)
        self.trends = TrendBuilder(self.repository, self.now)
        self.snapshots = SnapshotStore(db)

    # =========================================================================
    # OVERVIEW
    # =========================================================================
    async def get_platform_overview(self, date_range: DateRange) -> Dict[str, Any]:
        """
        Headline platform counts.

        User and organization totals are all-time; hours and opportunities
        are limited to the range.
        """
        repo = self.repository
        hours, _ = await repo.approved_hours_stats(date_range)
        compliance = await self.compliance.platform_wide()

        return {
            "total_users": await repo.count_users(),
            "active_users": await repo.count_users(verified_only=True),
            "total_organizations": await repo.count_organizations(),
            "active_organizations": await repo.count_organizations(OrganizationStatus.ACTIVE),
            "total_volunteer_hours": round1(hours),
            "total_opportunities": await repo.count_opportunities(date_range=date_range),
            "completed_opportunities": await repo.count_opportunities(
                date_range=date_range, ended_before=self.now
            ),
            "platform_compliance_rate": compliance["overall_rate"],
        }

    # =========================================================================
    # TRENDS
    # =========================================================================
    async def get_user_growth_trend(self, date_range: DateRange) -> List[Dict[str, Any]]:
        return await self.trends.growth_trend(User.created_at, date_range, "user_growth")

    async def get_organization_growth_trend(self, date_range: DateRange) -> List[Dict[str, Any]]:
        return await self.trends.growth_trend(Organization.created_at, date_range, "organization_growth")

    async def get_volunteer_hours_trend(self, date_range: DateRange) -> List[Dict[str, Any]]:
        return await self.trends.volunteer_hours_trend(date_range)

    # =========================================================================
    # COMPLIANCE & LEADERBOARD
    # =========================================================================
    async def get_compliance_rates(self) -> Dict[str, Any]:
        return await self.compliance.platform_wide()

    async def get_top_organizations(self, limit: int = 10) -> List[Dict[str, Any]]:
        return await self.trends.top_organizations(limit)

    # =========================================================================
    # ENGAGEMENT
    # =========================================================================
    async def get_engagement_metrics(self, date_range: DateRange) -> Dict[str, Any]:
        """
        Platform engagement for the range.

        Averages fall back to 0 when nobody contributed. Retention rates
        compare the first calendar month of the range with its last month
        and are recomputed on every call.
        """
        repo = self.repository

        hours, contributors = await repo.approved_hours_stats(date_range)
        applications, applicants = await repo.accepted_application_stats(date_range)

        monthly_active = await repo.users_with_approved_hours(start_of_month(self.now).date())

        user_retention = 100.0
        organization_retention = 100.0
        if not date_range.empty:
            first_month = DateRange(start_of_month(date_range.start), end_of_month(date_range.start))

            first_month_users = await repo.users_with_approved_hours(
                first_month.start_date, first_month.end_date
            )
            retained = await repo.users_with_approved_hours(
                start_of_month(date_range.end).date(), user_ids=first_month_users
            )
            user_retention = range_retention(first_month_users, retained)

            new_organizations = await repo.organization_ids_created(first_month)
            still_active = await repo.count_organizations_in(new_organizations, OrganizationStatus.ACTIVE)
            organization_retention = rate(still_active, len(new_organizations))

        return {
            "average_hours_per_user": safe_average(hours, contributors),
            "average_opportunities_per_user": safe_average(applications, applicants),
            "user_retention_rate": user_retention,
            "organization_retention_rate": organization_retention,
            "monthly_active_users": len(monthly_active),
        }

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================
    async def store_metric(
        self,
        metric_type: str,
        metric_date: date,
        metric_value: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        snapshot = await self.snapshots.store(metric_type, metric_date, metric_value, metadata)
        return {
            "id": snapshot.id,
            "metric_type": snapshot.metric_type,
            "metric_date": snapshot.metric_date.isoformat(),
            "metric_value": snapshot.metric_value,
            "metadata": snapshot.metadata_,
        }

    async def get_metric_history(self, metric_type: str, date_range: DateRange) -> List[Dict[str, Any]]:
        return await self.snapshots.history(metric_type, date_range)

    async def capture_daily_snapshot(self, metric_date: Optional[date] = None) -> List[Dict[str, Any]]:
        """Archive today's platform overview as individual metric snapshots"""
        metric_date = metric_date or self.now.date()
        day = DateRange(
            datetime.combine(metric_date, datetime.min.time()),
            datetime.combine(metric_date, datetime.max.time()),
        )
        overview = await self.get_platform_overview(day)

        captured = []
        for metric_type, key in (
            ("platform.total_users", "total_users"),
            ("platform.active_organizations", "active_organizations"),
            ("platform.volunteer_hours", "total_volunteer_hours"),
            ("platform.compliance_rate", "platform_compliance_rate"),
        ):
            captured.append(await self.store_metric(
                metric_type, metric_date, overview[key], {"source": "daily_snapshot"}
            ))

        logger.info(f"Captured {len(captured)} platform snapshots for {metric_date}")
        return captured
