# ============================================================================
# Metric Repository
# ============================================================================
"""
Read-only data access for the analytics layer.

Every method issues one query against the injected session and returns plain
numbers, dicts or row tuples. Storage failures are logged with the metric
name and scope, then surfaced as RepositoryFailure.
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from datetime import datetime, date
import logging

from sqlalchemy import select, func, and_, or_, case, false, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import RepositoryFailure
from app.models.user import User
from app.models.organization import Organization, OrganizationVolunteer, Team, OrganizationStatus, MembershipStatus
from app.models.compliance import ComplianceRequirement, ComplianceDocument, DocumentStatus
from app.models.activity import (
    Opportunity, Application, Attendance, VolunteerHour,
    HourStatus, OpportunityStatus, ApplicationStatus, AttendanceStatus,
)
from app.services.analytics.bucketing import TimedValue
from app.services.analytics.date_ranges import DateRange
from app.services.analytics.rates import as_number

logger = logging.getLogger(__name__)


def within(column, date_range: Optional[DateRange], dates: bool = False):
    """Inclusive range predicate; an empty range matches nothing"""
    if date_range is None:
        return true()
    if date_range.empty:
        return false()
    if dates:
        return column.between(date_range.start_date, date_range.end_date)
    return column.between(date_range.start, date_range.end)


def _scope(organization_id: Optional[int]) -> str:
    return f"organization {organization_id}" if organization_id is not None else "platform"


class MetricRepository:
    """Aggregate queries over the volunteering tables"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _execute(self, stmt, metric: str, organization_id: Optional[int] = None):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            scope = _scope(organization_id)
            logger.error(f"Query for '{metric}' failed ({scope}): {e}")
            raise RepositoryFailure(metric, scope) from e

    async def _count(self, stmt, metric: str, organization_id: Optional[int] = None) -> int:
        result = await self._execute(stmt, metric, organization_id)
        return int(result.scalar() or 0)

    # =========================================================================
    # Users & Organizations
    # =========================================================================
    async def get_organization(self, organization_id: int) -> Optional[Organization]:
        result = await self._execute(
            select(Organization).where(Organization.id == organization_id),
            "organization", organization_id
        )
        return result.scalar_one_or_none()

    async def count_users(self, verified_only: bool = False) -> int:
        stmt = select(func.count(User.id))
        if verified_only:
            stmt = stmt.where(User.email_verified_at.isnot(None))
        return await self._count(stmt, "verified_users" if verified_only else "total_users")

    async def count_organizations(self, status: Optional[OrganizationStatus] = None) -> int:
        stmt = select(func.count(Organization.id))
        if status is not None:
            stmt = stmt.where(Organization.status == status)
        return await self._count(stmt, "organizations")

    async def creation_times(self, column, date_range: DateRange, metric: str) -> List[datetime]:
        """Creation timestamps within the range, for growth trends"""
        result = await self._execute(
            select(column).where(within(column, date_range)),
            metric
        )
        return [row[0] for row in result.all() if row[0] is not None]

    async def organization_ids_created(self, date_range: DateRange) -> List[int]:
        result = await self._execute(
            select(Organization.id).where(within(Organization.created_at, date_range)),
            "organizations_created"
        )
        return [row[0] for row in result.all()]

    async def count_organizations_in(self, organization_ids: Sequence[int], status: OrganizationStatus) -> int:
        if not organization_ids:
            return 0
        return await self._count(
            select(func.count(Organization.id))
            .where(Organization.id.in_(organization_ids))
            .where(Organization.status == status),
            "organizations_by_status"
        )

    # =========================================================================
    # Memberships
    # =========================================================================
    async def count_members(
        self,
        organization_id: Optional[int] = None,
        status: Optional[MembershipStatus] = None,
    ) -> int:
        """Distinct users with a membership, optionally by status"""
        stmt = select(func.count(func.distinct(OrganizationVolunteer.user_id)))
        if organization_id is not None:
            stmt = stmt.where(OrganizationVolunteer.organization_id == organization_id)
        if status is not None:
            stmt = stmt.where(OrganizationVolunteer.status == status)
        return await self._count(stmt, "members", organization_id)

    async def count_active_volunteers(self, organization_id: Optional[int] = None) -> int:
        return await self.count_members(organization_id, MembershipStatus.ACTIVE)

    async def count_members_joined(self, organization_id: int, date_range: DateRange) -> int:
        joined_on = func.coalesce(OrganizationVolunteer.joined_at, OrganizationVolunteer.created_at)
        return await self._count(
            select(func.count(func.distinct(OrganizationVolunteer.user_id)))
            .where(OrganizationVolunteer.organization_id == organization_id)
            .where(within(joined_on, date_range)),
            "new_members", organization_id
        )

    async def membership_join_dates(self, organization_id: int) -> List[Tuple[int, Optional[datetime]]]:
        """(user_id, joined_at or created_at) for every membership of the organization"""
        joined_on = func.coalesce(OrganizationVolunteer.joined_at, OrganizationVolunteer.created_at)
        result = await self._execute(
            select(OrganizationVolunteer.user_id, joined_on.label("joined_on"))
            .where(OrganizationVolunteer.organization_id == organization_id),
            "membership_cohorts", organization_id
        )
        return [(row.user_id, row.joined_on) for row in result.all()]

    # =========================================================================
    # Volunteer Hours
    # =========================================================================
    def _approved_hours(self, organization_id: Optional[int], date_range: Optional[DateRange]):
        conditions = [
            VolunteerHour.status == HourStatus.APPROVED,
            within(VolunteerHour.date, date_range, dates=True),
        ]
        if organization_id is not None:
            conditions.append(VolunteerHour.organization_id == organization_id)
        return and_(*conditions)

    async def approved_hours_stats(
        self,
        date_range: Optional[DateRange] = None,
        organization_id: Optional[int] = None,
    ) -> Tuple[float, int]:
        """(sum of approved hours, distinct users who logged them)"""
        result = await self._execute(
            select(
                func.sum(VolunteerHour.hours),
                func.count(func.distinct(VolunteerHour.user_id)),
            ).where(self._approved_hours(organization_id, date_range)),
            "approved_hours", organization_id
        )
        row = result.one()
        return as_number(row[0]), int(row[1] or 0)

    async def approved_hour_rows(
        self,
        date_range: DateRange,
        organization_id: Optional[int] = None,
    ) -> List[TimedValue]:
        """Approved hour logs as bucketable rows keyed by user"""
        result = await self._execute(
            select(VolunteerHour.date, VolunteerHour.hours, VolunteerHour.user_id)
            .where(self._approved_hours(organization_id, date_range)),
            "hours_trend", organization_id
        )
        return [
            TimedValue(timestamp=row.date, value=as_number(row.hours), key=row.user_id)
            for row in result.all()
        ]

    async def hours_by_user(self, date_range: DateRange, organization_id: int) -> Dict[int, float]:
        result = await self._execute(
            select(VolunteerHour.user_id, func.sum(VolunteerHour.hours).label("total_hours"))
            .where(self._approved_hours(organization_id, date_range))
            .group_by(VolunteerHour.user_id),
            "hours_by_user", organization_id
        )
        return {row.user_id: as_number(row.total_hours) for row in result.all()}

    async def users_with_approved_hours(
        self,
        since: date,
        until: Optional[date] = None,
        organization_id: Optional[int] = None,
        user_ids: Optional[Iterable[int]] = None,
    ) -> Set[int]:
        """Distinct users with an approved log dated in [since, until]"""
        stmt = (
            select(func.distinct(VolunteerHour.user_id))
            .where(VolunteerHour.status == HourStatus.APPROVED)
            .where(VolunteerHour.date >= since)
        )
        if until is not None:
            stmt = stmt.where(VolunteerHour.date <= until)
        if organization_id is not None:
            stmt = stmt.where(VolunteerHour.organization_id == organization_id)
        if user_ids is not None:
            user_ids = list(user_ids)
            if not user_ids:
                return set()
            stmt = stmt.where(VolunteerHour.user_id.in_(user_ids))

        result = await self._execute(stmt, "active_users", organization_id)
        return {row[0] for row in result.all()}

    # =========================================================================
    # Opportunities, Applications, Attendance
    # =========================================================================
    async def count_opportunities(
        self,
        organization_id: Optional[int] = None,
        date_range: Optional[DateRange] = None,
        ended_before: Optional[datetime] = None,
        status: Optional[OpportunityStatus] = None,
        starting_after: Optional[datetime] = None,
    ) -> int:
        stmt = select(func.count(Opportunity.id)).where(within(Opportunity.start_at, date_range))
        if organization_id is not None:
            stmt = stmt.where(Opportunity.organization_id == organization_id)
        if ended_before is not None:
            stmt = stmt.where(Opportunity.end_at < ended_before)
        if status is not None:
            stmt = stmt.where(Opportunity.status == status)
        if starting_after is not None:
            stmt = stmt.where(Opportunity.start_at >= starting_after)
        return await self._count(stmt, "opportunities", organization_id)

    async def accepted_application_stats(self, date_range: DateRange) -> Tuple[int, int]:
        """Platform-wide (accepted applications, distinct applicants) created within the range"""
        result = await self._execute(
            select(func.count(Application.id), func.count(func.distinct(Application.user_id)))
            .where(Application.status == ApplicationStatus.ACCEPTED)
            .where(within(Application.created_at, date_range)),
            "accepted_applications"
        )
        row = result.one()
        return int(row[0] or 0), int(row[1] or 0)

    async def applications_by_status(self, organization_id: int) -> Dict[str, int]:
        result = await self._execute(
            select(Application.status, func.count(Application.id))
            .join(Opportunity, Opportunity.id == Application.opportunity_id)
            .where(Opportunity.organization_id == organization_id)
            .group_by(Application.status),
            "applications_by_status", organization_id
        )
        return {row[0].value: int(row[1]) for row in result.all()}

    async def attendances_by_method(self, organization_id: int) -> Dict[str, int]:
        result = await self._execute(
            select(Attendance.method, func.count(Attendance.id))
            .join(Opportunity, Opportunity.id == Attendance.opportunity_id)
            .where(Opportunity.organization_id == organization_id)
            .group_by(Attendance.method),
            "attendances_by_method", organization_id
        )
        return {(row[0] or "unknown"): int(row[1]) for row in result.all()}

    def _present_attendance(self, organization_id: int, date_range: DateRange):
        return and_(
            Attendance.status == AttendanceStatus.PRESENT,
            Opportunity.organization_id == organization_id,
            within(Attendance.check_in_at, date_range),
        )

    async def present_attendance_stats(self, organization_id: int, date_range: DateRange) -> Tuple[int, int]:
        """(present attendances, distinct attendees) checked in within the range"""
        result = await self._execute(
            select(func.count(Attendance.id), func.count(func.distinct(Attendance.user_id)))
            .join(Opportunity, Opportunity.id == Attendance.opportunity_id)
            .where(self._present_attendance(organization_id, date_range)),
            "attendance", organization_id
        )
        row = result.one()
        return int(row[0] or 0), int(row[1] or 0)

    async def present_attendance_by_user(
        self,
        organization_id: int,
        date_range: DateRange,
        user_ids: Sequence[int],
    ) -> Dict[int, int]:
        if not user_ids:
            return {}
        result = await self._execute(
            select(Attendance.user_id, func.count(Attendance.id))
            .join(Opportunity, Opportunity.id == Attendance.opportunity_id)
            .where(self._present_attendance(organization_id, date_range))
            .where(Attendance.user_id.in_(list(user_ids)))
            .group_by(Attendance.user_id),
            "attendance_by_user", organization_id
        )
        return {row[0]: int(row[1]) for row in result.all()}

    async def count_teams(self, organization_id: int) -> int:
        return await self._count(
            select(func.count(Team.id)).where(Team.organization_id == organization_id),
            "teams", organization_id
        )

    async def event_performance_rows(self, organization_id: int, date_range: DateRange, limit: int) -> List[Any]:
        """Opportunities starting in range with registration, attendance and hour totals"""
        registered = (
            select(Application.opportunity_id, func.count(Application.id).label("registered"))
            .where(Application.status == ApplicationStatus.ACCEPTED)
            .group_by(Application.opportunity_id)
            .subquery()
        )
        attended = (
            select(Attendance.opportunity_id, func.count(Attendance.id).label("attended"))
            .where(Attendance.status == AttendanceStatus.PRESENT)
            .group_by(Attendance.opportunity_id)
            .subquery()
        )
        logged = (
            select(VolunteerHour.opportunity_id, func.sum(VolunteerHour.hours).label("total_hours"))
            .where(VolunteerHour.status == HourStatus.APPROVED)
            .where(VolunteerHour.opportunity_id.isnot(None))
            .group_by(VolunteerHour.opportunity_id)
            .subquery()
        )

        result = await self._execute(
            select(
                Opportunity.id,
                Opportunity.title,
                Opportunity.capacity,
                Opportunity.start_at,
                Opportunity.status,
                func.coalesce(registered.c.registered, 0).label("registered"),
                func.coalesce(attended.c.attended, 0).label("attended"),
                func.coalesce(logged.c.total_hours, 0).label("total_hours"),
            )
            .select_from(Opportunity)
            .outerjoin(registered, registered.c.opportunity_id == Opportunity.id)
            .outerjoin(attended, attended.c.opportunity_id == Opportunity.id)
            .outerjoin(logged, logged.c.opportunity_id == Opportunity.id)
            .where(Opportunity.organization_id == organization_id)
            .where(within(Opportunity.start_at, date_range))
            .order_by(Opportunity.start_at.desc(), Opportunity.id.desc())
            .limit(limit),
            "event_performance", organization_id
        )
        return result.all()

    # =========================================================================
    # Compliance
    # =========================================================================
    async def count_mandatory_requirements(self, organization_id: Optional[int] = None) -> int:
        stmt = select(func.count(ComplianceRequirement.id)).where(ComplianceRequirement.is_mandatory == True)
        if organization_id is not None:
            stmt = stmt.where(ComplianceRequirement.organization_id == organization_id)
        return await self._count(stmt, "mandatory_requirements", organization_id)

    async def compliance_breakdown(self, now: datetime, organization_id: Optional[int] = None) -> List[Any]:
        """
        Per doc type: required, valid and expired counts in one round trip.

        The unit counted is a distinct (doc_type, organization, volunteer)
        triple: an active membership in an organization with a mandatory
        requirement for that doc type. Both the denominator and the
        numerators are taken over the same triples.
        """
        holds_valid = (
            select(ComplianceDocument.id)
            .where(ComplianceDocument.user_id == OrganizationVolunteer.user_id)
            .where(ComplianceDocument.doc_type == ComplianceRequirement.doc_type)
            .where(ComplianceDocument.status == DocumentStatus.VALID)
            .where(or_(ComplianceDocument.expires_at.is_(None), ComplianceDocument.expires_at > now))
            .exists()
        )
        holds_expired = (
            select(ComplianceDocument.id)
            .where(ComplianceDocument.user_id == OrganizationVolunteer.user_id)
            .where(ComplianceDocument.doc_type == ComplianceRequirement.doc_type)
            .where(ComplianceDocument.expires_at.isnot(None))
            .where(ComplianceDocument.expires_at <= now)
            .exists()
        )

        triples = (
            select(
                ComplianceRequirement.doc_type.label("doc_type"),
                OrganizationVolunteer.organization_id.label("organization_id"),
                OrganizationVolunteer.user_id.label("user_id"),
                case((holds_valid, 1), else_=0).label("is_valid"),
                case((holds_expired, 1), else_=0).label("is_expired"),
            )
            .select_from(OrganizationVolunteer)
            .join(
                ComplianceRequirement,
                ComplianceRequirement.organization_id == OrganizationVolunteer.organization_id,
            )
            .where(OrganizationVolunteer.status == MembershipStatus.ACTIVE)
            .where(ComplianceRequirement.is_mandatory == True)
            .distinct()
        )
        if organization_id is not None:
            triples = triples.where(OrganizationVolunteer.organization_id == organization_id)
        triples = triples.subquery()

        result = await self._execute(
            select(
                triples.c.doc_type,
                func.count().label("total"),
                func.coalesce(func.sum(triples.c.is_valid), 0).label("valid"),
                func.coalesce(
                    func.sum(case((and_(triples.c.is_valid == 0, triples.c.is_expired == 1), 1), else_=0)),
                    0
                ).label("expired"),
            )
            .group_by(triples.c.doc_type)
            .order_by(triples.c.doc_type),
            "compliance_breakdown", organization_id
        )
        return result.all()

    async def expiring_documents(
        self,
        organization_id: int,
        now: datetime,
        until: datetime,
        limit: int,
    ) -> List[Any]:
        """Valid documents of active volunteers expiring in (now, until], soonest first"""
        active_members = (
            select(OrganizationVolunteer.user_id)
            .where(OrganizationVolunteer.organization_id == organization_id)
            .where(OrganizationVolunteer.status == MembershipStatus.ACTIVE)
        )
        result = await self._execute(
            select(
                ComplianceDocument.user_id,
                User.first_name,
                User.last_name,
                ComplianceDocument.doc_type,
                ComplianceDocument.expires_at,
            )
            .join(User, User.id == ComplianceDocument.user_id)
            .where(ComplianceDocument.user_id.in_(active_members))
            .where(ComplianceDocument.status == DocumentStatus.VALID)
            .where(ComplianceDocument.expires_at > now)
            .where(ComplianceDocument.expires_at <= until)
            .order_by(ComplianceDocument.expires_at.asc())
            .limit(limit),
            "expiring_documents", organization_id
        )
        return result.all()

    # =========================================================================
    # Leaderboards
    # =========================================================================
    async def top_organization_rows(self, limit: int) -> List[Any]:
        """
        Active organizations with approved hours, active volunteers and
        opportunity counts. Each dimension is aggregated separately so the
        joins cannot multiply each other's totals.
        """
        hours = (
            select(VolunteerHour.organization_id, func.sum(VolunteerHour.hours).label("total_hours"))
            .where(VolunteerHour.status == HourStatus.APPROVED)
            .where(VolunteerHour.organization_id.isnot(None))
            .group_by(VolunteerHour.organization_id)
            .subquery()
        )
        volunteers = (
            select(
                OrganizationVolunteer.organization_id,
                func.count(func.distinct(OrganizationVolunteer.user_id)).label("total_volunteers"),
            )
            .where(OrganizationVolunteer.status == MembershipStatus.ACTIVE)
            .group_by(OrganizationVolunteer.organization_id)
            .subquery()
        )
        opportunities = (
            select(Opportunity.organization_id, func.count(Opportunity.id).label("total_opportunities"))
            .group_by(Opportunity.organization_id)
            .subquery()
        )
        total_hours = func.coalesce(hours.c.total_hours, 0)

        result = await self._execute(
            select(
                Organization.id,
                Organization.name,
                total_hours.label("total_hours"),
                func.coalesce(volunteers.c.total_volunteers, 0).label("total_volunteers"),
                func.coalesce(opportunities.c.total_opportunities, 0).label("total_opportunities"),
            )
            .select_from(Organization)
            .outerjoin(hours, hours.c.organization_id == Organization.id)
            .outerjoin(volunteers, volunteers.c.organization_id == Organization.id)
            .outerjoin(opportunities, opportunities.c.organization_id == Organization.id)
            .where(Organization.status == OrganizationStatus.ACTIVE)
            .order_by(total_hours.desc(), Organization.id.asc())
            .limit(limit),
            "top_organizations"
        )
        return result.all()

    async def top_volunteer_rows(self, organization_id: int, date_range: DateRange, limit: int) -> List[Any]:
        """Approved hours per active member within the range, highest first"""
        total_hours = func.sum(VolunteerHour.hours).label("total_hours")
        result = await self._execute(
            select(
                User.id.label("user_id"),
                User.first_name,
                User.last_name,
                User.email,
                total_hours,
                func.count(VolunteerHour.id).label("log_count"),
            )
            .select_from(VolunteerHour)
            .join(User, User.id == VolunteerHour.user_id)
            .join(
                OrganizationVolunteer,
                and_(
                    OrganizationVolunteer.user_id == VolunteerHour.user_id,
                    OrganizationVolunteer.organization_id == organization_id,
                    OrganizationVolunteer.status == MembershipStatus.ACTIVE,
                ),
            )
            .where(self._approved_hours(organization_id, date_range))
            .group_by(User.id, User.first_name, User.last_name, User.email)
            .order_by(total_hours.desc(), User.id.asc())
            .limit(limit),
            "top_volunteers", organization_id
        )
        return result.all()
