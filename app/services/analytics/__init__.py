# ============================================================================
# Analytics Services Module
# ============================================================================
"""
Read-side analytics and compliance aggregation.

Components:
- date_ranges: preset and ISO-8601 range resolution
- bucketing: zero-filled time buckets
- rates: percentages, averages and growth
- repository: aggregate queries
- compliance, retention, trends: the aggregators
- snapshots: append-only metric archive
"""

from app.services.analytics.bucketing import Granularity
from app.services.analytics.date_ranges import DateRange, resolve_date_range
from app.services.analytics.execution import AggregationResult, run_with_timeout
from app.services.analytics.organization_analytics import OrganizationAnalyticsService
from app.services.analytics.repository import MetricRepository

__all__ = [
    "Granularity",
    "DateRange",
    "resolve_date_range",
    "AggregationResult",
    "run_with_timeout",
    "OrganizationAnalyticsService",
    "MetricRepository",
]
