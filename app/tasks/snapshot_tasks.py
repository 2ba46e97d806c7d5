# ============================================================================
# Metric Snapshot Tasks
# ============================================================================
from celery import shared_task
from datetime import date
from typing import Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async functions in Celery tasks"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _capture(metric_date: Optional[date] = None) -> int:
    from app.core.database import session_scope
    from app.services.admin.analytics_service import AdminAnalyticsService

    async with session_scope() as db:
        captured = await AdminAnalyticsService(db).capture_daily_snapshot(metric_date)
    return len(captured)


@shared_task(name="app.tasks.snapshot_tasks.capture_platform_snapshots")
def capture_platform_snapshots(metric_date: Optional[str] = None):
    """Store today's platform overview figures as metric snapshots"""
    target = date.fromisoformat(metric_date) if metric_date else None
    count = run_async(_capture(target))
    logger.info(f"Daily platform snapshot stored {count} metrics")
    return count
