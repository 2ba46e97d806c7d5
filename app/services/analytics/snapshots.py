# ============================================================================
# Snapshot Store
# ============================================================================
"""
Append-only archive of computed metrics for historical charts.

Snapshots are only ever inserted. Several rows for the same metric type and
date may coexist; readers take them in insertion order.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import RepositoryFailure
from app.models.metrics import MetricSnapshot
from app.services.analytics.date_ranges import DateRange
from app.services.analytics.repository import within

logger = logging.getLogger(__name__)


class SnapshotStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def store(
        self,
        metric_type: str,
        metric_date: Union[date, datetime],
        metric_value: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MetricSnapshot:
        """Append a snapshot; the caller's session owns the commit"""
        if isinstance(metric_date, datetime):
            metric_date = metric_date.date()

        snapshot = MetricSnapshot(
            metric_type=metric_type,
            metric_date=metric_date,
            metric_value=float(metric_value),
            metadata_=metadata or {},
        )
        self.db.add(snapshot)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to store snapshot {metric_type} for {metric_date}: {e}")
            raise RepositoryFailure(metric_type, "snapshot store") from e

        logger.info(f"Stored snapshot {metric_type}={metric_value} for {metric_date}")
        return snapshot

    async def history(self, metric_type: str, date_range: DateRange) -> List[Dict[str, Any]]:
        """Stored points of one metric within the range, oldest first"""
        try:
            result = await self.db.execute(
                select(MetricSnapshot)
                .where(MetricSnapshot.metric_type == metric_type)
                .where(within(MetricSnapshot.metric_date, date_range, dates=True))
                .order_by(MetricSnapshot.metric_date.asc(), MetricSnapshot.id.asc())
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to read snapshot history for {metric_type}: {e}")
            raise RepositoryFailure(metric_type, "snapshot store") from e

        return [
            {
                "date": snapshot.metric_date.isoformat(),
                "value": snapshot.metric_value,
                "metadata": snapshot.metadata_ or {},
            }
            for snapshot in result.scalars().all()
        ]
