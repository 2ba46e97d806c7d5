# ============================================================================
# Organization Analytics Endpoints
# ============================================================================
"""
Organization dashboard and report endpoints.

Each endpoint resolves the request into a DateRange, runs one aggregation
under the configured timeout and returns its result. Errors are rendered by
the application's exception handler.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from app.api.deps import get_date_range, get_granularity, get_organization
from app.core.database import get_db
from app.models.organization import Organization
from app.schemas.analytics import (
    ComplianceStatusResponse, EventPerformance, HoursTrendPoint,
    RetentionCohort, TopVolunteer,
)
from app.services.analytics.bucketing import Granularity
from app.services.analytics.date_ranges import DateRange
from app.services.analytics.execution import run_with_timeout
from app.services.analytics.organization_analytics import OrganizationAnalyticsService

router = APIRouter(prefix="/organizations/{organization_id}/analytics", tags=["organization-analytics"])


@router.get("/overview")
async def get_overview(
    organization: Organization = Depends(get_organization),
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    """Volunteer, hours, opportunity, application, attendance and team counts"""
    service = OrganizationAnalyticsService(db)
    stats = await run_with_timeout(
        "organization_overview", service.get_overview_stats(organization.id, date_range)
    )
    return {"period": date_range.to_dict(), **stats}


@router.get("/hours-trend", response_model=List[HoursTrendPoint])
async def get_hours_trend(
    organization: Organization = Depends(get_organization),
    date_range: DateRange = Depends(get_date_range),
    granularity: Granularity = Depends(get_granularity),
    db: AsyncSession = Depends(get_db)
):
    """Approved hours bucketed over the requested range, with empty periods filled"""
    service = OrganizationAnalyticsService(db)
    return await run_with_timeout(
        "hours_trend", service.get_hours_trend(organization.id, date_range, granularity)
    )


@router.get("/hours-trend/monthly", response_model=List[HoursTrendPoint])
async def get_monthly_hours_trend(
    months: Optional[int] = Query(None, ge=1, le=36),
    organization: Organization = Depends(get_organization),
    db: AsyncSession = Depends(get_db)
):
    """Approved hours for the last N whole calendar months (default 6)"""
    service = OrganizationAnalyticsService(db)
    return await run_with_timeout(
        "monthly_hours_trend", service.get_monthly_hours_trend(organization.id, months)
    )


@router.get("/participation")
async def get_participation(
    organization: Organization = Depends(get_organization),
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = OrganizationAnalyticsService(db)
    return await run_with_timeout(
        "volunteer_participation", service.get_volunteer_participation(organization.id, date_range)
    )


@router.get("/events", response_model=List[EventPerformance])
async def get_event_performance(
    limit: int = Query(20, ge=1, le=100),
    organization: Organization = Depends(get_organization),
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = OrganizationAnalyticsService(db)
    return await run_with_timeout(
        "event_performance", service.get_event_performance(organization.id, date_range, limit)
    )


@router.get("/compliance", response_model=ComplianceStatusResponse)
async def get_compliance(
    organization: Organization = Depends(get_organization),
    db: AsyncSession = Depends(get_db)
):
    """Per document type and pooled compliance, plus documents expiring soon"""
    service = OrganizationAnalyticsService(db)
    return await run_with_timeout(
        "compliance_status", service.get_compliance_status(organization.id)
    )


@router.get("/engagement")
async def get_engagement(
    organization: Organization = Depends(get_organization),
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = OrganizationAnalyticsService(db)
    return await run_with_timeout(
        "engagement_metrics", service.get_engagement_metrics(organization.id, date_range)
    )


@router.get("/top-volunteers", response_model=List[TopVolunteer])
async def get_top_volunteers(
    limit: int = Query(10, ge=1, le=100),
    organization: Organization = Depends(get_organization),
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    service = OrganizationAnalyticsService(db)
    return await run_with_timeout(
        "top_volunteers", service.get_top_volunteers(organization.id, date_range, limit)
    )


@router.get("/retention", response_model=List[RetentionCohort])
async def get_retention(
    limit: Optional[int] = Query(None, ge=1, le=60),
    organization: Organization = Depends(get_organization),
    db: AsyncSession = Depends(get_db)
):
    """Join-month cohorts with the share of members active in the last 30 days"""
    service = OrganizationAnalyticsService(db)
    return await run_with_timeout(
        "volunteer_retention", service.get_volunteer_retention(organization.id, limit)
    )


@router.get("/dashboard")
async def get_dashboard(
    organization: Organization = Depends(get_organization),
    date_range: DateRange = Depends(get_date_range),
    db: AsyncSession = Depends(get_db)
):
    """
    All dashboard sections in one call.

    Each section reports ``ok`` with its data, or ``ok: false`` with the
    error code, so the page can render the sections that succeeded.
    """
    service = OrganizationAnalyticsService(db)
    sections = await run_with_timeout(
        "organization_dashboard", service.get_dashboard(organization.id, date_range)
    )
    return {
        "period": date_range.to_dict(),
        "sections": {name: result.to_dict() for name, result in sections.items()},
    }
