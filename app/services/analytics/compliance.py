# ============================================================================
# Compliance Aggregator
# ============================================================================
"""
Compliance rates per document type and pooled across types.

A volunteer is "required" to hold a document type once for every
organization in which they are an active member and that organization has a
mandatory requirement for the type. The document itself is user-scoped, so a
single valid document satisfies every organization requiring it.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import logging

from app.config import get_settings
from app.services.analytics.date_ranges import utcnow
from app.services.analytics.rates import rate
from app.services.analytics.repository import MetricRepository

logger = logging.getLogger(__name__)
settings = get_settings()


class ComplianceAggregator:
    """Compliance figures for one organization or the whole platform"""

    def __init__(self, repository: MetricRepository, now: Optional[datetime] = None):
        self.repository = repository
        self.now = now or utcnow()

    async def per_document_type(self, organization_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Required versus valid counts for each mandatory document type.

        Args:
            organization_id: Restrict to one organization; None for all

        Returns:
            List of {doc_type, total, valid, expired, missing, rate}, ordered
            by doc type
        """
        rows = await self.repository.compliance_breakdown(self.now, organization_id)

        breakdown = []
        for row in rows:
            total = int(row.total or 0)
            valid = int(row.valid or 0)
            expired = int(row.expired or 0)
            breakdown.append({
                "doc_type": row.doc_type,
                "total": total,
                "valid": valid,
                "expired": expired,
                "missing": max(total - valid - expired, 0),
                "rate": rate(valid, total),
            })
        return breakdown

    @staticmethod
    def pooled_rate(breakdown: List[Dict[str, Any]]) -> float:
        """Summed valid over summed required, never a mean of per-type rates"""
        return rate(
            sum(item["valid"] for item in breakdown),
            sum(item["total"] for item in breakdown),
        )

    async def overall(self, organization_id: Optional[int] = None) -> float:
        return self.pooled_rate(await self.per_document_type(organization_id))

    async def platform_wide(self) -> Dict[str, Any]:
        """Platform compliance, skipping the grouped query when nothing is required"""
        active_volunteers = await self.repository.count_active_volunteers()
        if active_volunteers == 0:
            return {"overall_rate": 100.0, "by_document_type": []}

        requirements = await self.repository.count_mandatory_requirements()
        if requirements == 0:
            return {"overall_rate": 100.0, "by_document_type": []}

        breakdown = await self.per_document_type()
        return {
            "overall_rate": self.pooled_rate(breakdown),
            "by_document_type": breakdown,
        }

    async def expiring_documents(self, organization_id: int) -> List[Dict[str, Any]]:
        """Valid documents of active volunteers that expire soon"""
        until = self.now + timedelta(days=settings.COMPLIANCE_EXPIRING_WINDOW_DAYS)
        rows = await self.repository.expiring_documents(
            organization_id, self.now, until, settings.COMPLIANCE_EXPIRING_LIMIT
        )
        return [
            {
                "user_id": row.user_id,
                "name": f"{row.first_name or ''} {row.last_name or ''}".strip(),
                "doc_type": row.doc_type,
                "expires_at": row.expires_at.isoformat(),
                "days_remaining": (row.expires_at - self.now).days,
            }
            for row in rows
        ]

    async def status(self, organization_id: int) -> Dict[str, Any]:
        """Full compliance status for an organization"""
        breakdown = await self.per_document_type(organization_id)
        overall = self.pooled_rate(breakdown)
        if breakdown:
            logger.debug(f"Organization {organization_id} compliance {overall}% over {len(breakdown)} doc types")

        return {
            "overall_rate": overall,
            "total_required": sum(item["total"] for item in breakdown),
            "total_valid": sum(item["valid"] for item in breakdown),
            "by_document_type": breakdown,
            "expiring_soon": await self.expiring_documents(organization_id),
        }
