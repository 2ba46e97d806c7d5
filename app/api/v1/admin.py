# ============================================================================
# Admin Analytics Endpoints
# ============================================================================
"""
Platform-wide analytics endpoints for the admin dashboard.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from app.api.deps import get_date_range
from app.core.database import get_db
from app.schemas.analytics import (
    ComplianceRatesResponse, GrowthTrendPoint, MetricHistoryPoint,
    MetricSnapshotCreate, MetricSnapshotResponse, PlatformEngagement,
    PlatformOverview, TopOrganization,
)
from app.services.admin.analytics_service import AdminAnalyticsService
from app.services.analytics.date_ranges import DateRange, resolve_date_range
from app.services.analytics.execution import run_with_timeout


router = APIRouter(prefix="/admin/analytics", tags=["admin-analytics"])


# ============================================================================
# Overview & Trends
# ============================================================================
@router.get("/overview", response_model=PlatformOverview)
async def get_platform_overview(
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    """
    Platform KPI cards.

    Users and organizations are all-time totals; hours and opportunities
    are limited to the requested range.
    """
    service = AdminAnalyticsService(db)
    return await run_with_timeout("platform_overview", service.get_platform_overview(date_range))


@router.get("/user-growth", response_model=List[GrowthTrendPoint])
async def get_user_growth(
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = AdminAnalyticsService(db)
    return await run_with_timeout("user_growth", service.get_user_growth_trend(date_range))


@router.get("/organization-growth", response_model=List[GrowthTrendPoint])
async def get_organization_growth(
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = AdminAnalyticsService(db)
    return await run_with_timeout("organization_growth", service.get_organization_growth_trend(date_range))


@router.get("/volunteer-hours", response_model=List[GrowthTrendPoint])
async def get_volunteer_hours(
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = AdminAnalyticsService(db)
    return await run_with_timeout("volunteer_hours_trend", service.get_volunteer_hours_trend(date_range))


# ============================================================================
# Compliance, Leaderboard, Engagement
# ============================================================================
@router.get("/compliance", response_model=ComplianceRatesResponse)
async def get_compliance_rates(db: AsyncSession = Depends(get_db)):
    service = AdminAnalyticsService(db)
    return await run_with_timeout("platform_compliance", service.get_compliance_rates())


@router.get("/top-organizations", response_model=List[TopOrganization])
async def get_top_organizations(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    service = AdminAnalyticsService(db)
    return await run_with_timeout("top_organizations", service.get_top_organizations(limit))


@router.get("/engagement", response_model=PlatformEngagement)
async def get_engagement(
    preset: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db)
):
    """Engagement over the requested range; defaults to the last month"""
    date_range = resolve_date_range(preset, date_from, date_to, default_months=1)
    service = AdminAnalyticsService(db)
    return await run_with_timeout("platform_engagement", service.get_engagement_metrics(date_range))


# ============================================================================
# Metric Snapshots
# ============================================================================
@router.post("/metrics", response_model=MetricSnapshotResponse, status_code=201)
async def store_metric(
    payload: MetricSnapshotCreate,
    db: AsyncSession = Depends(get_db)
):
    """Archive a metric value for historical charts"""
    service = AdminAnalyticsService(db)
    return await service.store_metric(
        payload.metric_type, payload.metric_date, payload.metric_value, payload.metadata
    )


@router.get("/metrics/{metric_type}", response_model=List[MetricHistoryPoint])
async def get_metric_history(
    metric_type: str,
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = AdminAnalyticsService(db)
    return await run_with_timeout("metric_history", service.get_metric_history(metric_type, date_range))
