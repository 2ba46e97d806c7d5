# ============================================================================
# Analytics Schemas
# ============================================================================
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date

# ============================================================================
# Compliance
# ============================================================================
class DocumentTypeCompliance(BaseModel):
    doc_type: str
    total: int
    valid: int
    expired: int = 0
    missing: int = 0
    rate: float


class ExpiringDocument(BaseModel):
    user_id: int
    name: str
    doc_type: str
    expires_at: str
    days_remaining: int


class ComplianceStatusResponse(BaseModel):
    overall_rate: float
    total_required: int
    total_valid: int
    by_document_type: List[DocumentTypeCompliance]
    expiring_soon: List[ExpiringDocument]


class ComplianceRatesResponse(BaseModel):
    overall_rate: float
    by_document_type: List[DocumentTypeCompliance]


# ============================================================================
# Trends & Leaderboards
# ============================================================================
class HoursTrendPoint(BaseModel):
    period: str
    total_hours: float
    volunteer_count: int
    log_count: int


class GrowthTrendPoint(BaseModel):
    date: str
    count: float


class TopOrganization(BaseModel):
    id: int
    name: str
    total_hours: float
    total_volunteers: int
    total_opportunities: int
    rank: int


class TopVolunteer(BaseModel):
    user_id: int
    name: str
    email: Optional[str] = None
    total_hours: float
    log_count: int
    total_events: int
    rank: int


class RetentionCohort(BaseModel):
    month: str
    cohort_size: int
    still_active: int
    retention_rate: float


class EventPerformance(BaseModel):
    rank: int
    opportunity_id: int
    title: str
    date: Optional[str] = None
    status: Optional[str] = None
    capacity: int
    registered: int
    attended: int
    total_hours: float
    fill_rate: float
    show_up_rate: float


# ============================================================================
# Platform
# ============================================================================
class PlatformOverview(BaseModel):
    total_users: int
    active_users: int
    total_organizations: int
    active_organizations: int
    total_volunteer_hours: float
    total_opportunities: int
    completed_opportunities: int
    platform_compliance_rate: float


class PlatformEngagement(BaseModel):
    average_hours_per_user: float
    average_opportunities_per_user: float
    user_retention_rate: float
    organization_retention_rate: float
    monthly_active_users: int


class MetricSnapshotCreate(BaseModel):
    metric_type: str = Field(..., min_length=1, max_length=100)
    metric_date: date
    metric_value: float
    metadata: Optional[Dict[str, Any]] = None


class MetricSnapshotResponse(BaseModel):
    id: int
    metric_type: str
    metric_date: str
    metric_value: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MetricHistoryPoint(BaseModel):
    date: str
    value: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
