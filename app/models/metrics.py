# ============================================================================
# Metric Snapshot Model
# ============================================================================
from sqlalchemy import Column, String, Integer, DateTime, Date, Float, JSON, Index
from sqlalchemy.sql import func
from app.core.database import Base

class MetricSnapshot(Base):
    """Append-only archive of a computed metric value"""
    __tablename__ = "metric_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    metric_type = Column(String(100), nullable=False)
    metric_date = Column(Date, nullable=False)
    metric_value = Column(Float, nullable=False)
    metadata_ = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_metric_snapshots_type_date", "metric_type", "metric_date"),
    )

    def __repr__(self):
        return f"<MetricSnapshot {self.metric_type}={self.metric_value} @ {self.metric_date}>"
