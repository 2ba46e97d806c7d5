from app.models.user import User
from app.models.organization import Organization, OrganizationVolunteer, Team, OrganizationStatus, MembershipStatus
from app.models.compliance import ComplianceRequirement, ComplianceDocument, DocumentStatus
from app.models.activity import Opportunity, Application, Attendance, VolunteerHour
from app.models.activity import HourStatus, OpportunityStatus, ApplicationStatus, AttendanceStatus
from app.models.metrics import MetricSnapshot

__all__ = [
    "User", "Organization", "OrganizationVolunteer", "Team", "OrganizationStatus",
    "MembershipStatus", "ComplianceRequirement", "ComplianceDocument", "DocumentStatus",
    "Opportunity", "Application", "Attendance", "VolunteerHour", "HourStatus",
    "OpportunityStatus", "ApplicationStatus", "AttendanceStatus", "MetricSnapshot"
]
