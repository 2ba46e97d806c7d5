# ============================================================================
# Admin Services Module
# ============================================================================
"""
Admin services module providing platform-wide analytics.

Services:
- AdminAnalyticsService: Overview, growth trends, compliance, top
  organizations, engagement and metric snapshots
"""

from app.services.admin.analytics_service import AdminAnalyticsService

__all__ = [
    "AdminAnalyticsService",
]
