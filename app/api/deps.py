# ============================================================================
# API Dependencies
# ============================================================================
from typing import Optional
from fastapi import Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.database import get_db
from app.core.exceptions import OrganizationNotFound
from app.models.organization import Organization
from app.services.analytics.bucketing import Granularity, parse_granularity
from app.services.analytics.date_ranges import DateRange, resolve_date_range
from app.services.analytics.repository import MetricRepository
from app.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


# ============================================================================
# Request Parameter Dependencies
# ============================================================================
async def get_date_range(
    preset: Optional[str] = Query(None, description="today, week, month, quarter, year, last30days, last90days, last12months"),
    date_from: Optional[str] = Query(None, alias="from", description="ISO-8601 start date"),
    date_to: Optional[str] = Query(None, alias="to", description="ISO-8601 end date"),
) -> DateRange:
    """
    Resolve the request's date range.

    A preset wins over explicit bounds; with neither, the trailing default
    window applies.
    """
    return resolve_date_range(
        preset=preset,
        date_from=date_from,
        date_to=date_to,
        default_months=settings.ANALYTICS_DEFAULT_RANGE_MONTHS,
    )


async def get_granularity(
    group_by: str = Query("month", alias="groupBy", description="day, week, month, quarter or year"),
) -> Granularity:
    return parse_granularity(group_by)


async def get_organization(
    organization_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> Organization:
    """Load the organization in the path or fail with 404"""
    organization = await MetricRepository(db).get_organization(organization_id)
    if organization is None:
        raise OrganizationNotFound(organization_id)
    return organization
