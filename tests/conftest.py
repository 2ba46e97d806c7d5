# ============================================================================
# Test Configuration & Fixtures
# ============================================================================
import pytest
from datetime import datetime, date
from decimal import Decimal
from itertools import count
from typing import AsyncGenerator, Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.main import app
from app.core.database import Base, get_db
from app.models import (
    User, Organization, OrganizationVolunteer, Team, OrganizationStatus, MembershipStatus,
    ComplianceRequirement, ComplianceDocument, DocumentStatus,
    Opportunity, Application, Attendance, VolunteerHour,
    HourStatus, OpportunityStatus, ApplicationStatus, AttendanceStatus,
)


@pytest.fixture(scope="function")
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh SQLite database and session for each test"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class DataFactory:
    """Inserts rows with sensible defaults and flushes them"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._sequence = count(1)

    async def _add(self, instance):
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def user(self, first_name: str = "Test", last_name: str = "Volunteer",
                   created_at: Optional[datetime] = None, verified: bool = True) -> User:
        n = next(self._sequence)
        return await self._add(User(
            first_name=first_name,
            last_name=last_name,
            email=f"volunteer{n}@example.org",
            email_verified_at=datetime(2024, 1, 1) if verified else None,
            created_at=created_at or datetime(2024, 1, 1),
        ))

    async def organization(self, name: str = "Harbour Rescue",
                           status: OrganizationStatus = OrganizationStatus.ACTIVE,
                           created_at: Optional[datetime] = None) -> Organization:
        return await self._add(Organization(
            name=name, status=status, created_at=created_at or datetime(2023, 1, 1)
        ))

    async def membership(self, organization: Organization, user: User,
                         status: MembershipStatus = MembershipStatus.ACTIVE,
                         joined_at: Optional[datetime] = None,
                         created_at: Optional[datetime] = None) -> OrganizationVolunteer:
        return await self._add(OrganizationVolunteer(
            organization_id=organization.id,
            user_id=user.id,
            status=status,
            joined_at=joined_at,
            created_at=created_at or datetime(2023, 6, 1),
        ))

    async def requirement(self, organization: Organization, doc_type: str,
                          is_mandatory: bool = True) -> ComplianceRequirement:
        return await self._add(ComplianceRequirement(
            organization_id=organization.id, doc_type=doc_type, name=doc_type, is_mandatory=is_mandatory
        ))

    async def document(self, user: User, doc_type: str,
                       status: DocumentStatus = DocumentStatus.VALID,
                       expires_at: Optional[datetime] = None) -> ComplianceDocument:
        return await self._add(ComplianceDocument(
            user_id=user.id, doc_type=doc_type, status=status, expires_at=expires_at
        ))

    async def hours(self, user: User, on: date, hours: float = 1.0,
                    organization: Optional[Organization] = None,
                    opportunity: Optional[Opportunity] = None,
                    status: HourStatus = HourStatus.APPROVED) -> VolunteerHour:
        return await self._add(VolunteerHour(
            user_id=user.id,
            organization_id=organization.id if organization else None,
            opportunity_id=opportunity.id if opportunity else None,
            date=on,
            hours=Decimal(str(hours)),
            status=status,
        ))

    async def opportunity(self, organization: Organization, start_at: datetime,
                          end_at: Optional[datetime] = None, title: str = "Beach clean-up",
                          capacity: int = 0,
                          status: OpportunityStatus = OpportunityStatus.PUBLISHED) -> Opportunity:
        return await self._add(Opportunity(
            organization_id=organization.id, title=title, capacity=capacity,
            status=status, start_at=start_at, end_at=end_at,
        ))

    async def application(self, opportunity: Opportunity, user: User,
                          status: ApplicationStatus = ApplicationStatus.ACCEPTED,
                          created_at: Optional[datetime] = None) -> Application:
        return await self._add(Application(
            opportunity_id=opportunity.id, user_id=user.id, status=status,
            created_at=created_at or opportunity.start_at,
        ))

    async def attendance(self, opportunity: Opportunity, user: User,
                         status: AttendanceStatus = AttendanceStatus.PRESENT,
                         method: str = "qr",
                         check_in_at: Optional[datetime] = None) -> Attendance:
        return await self._add(Attendance(
            opportunity_id=opportunity.id, user_id=user.id, status=status, method=method,
            check_in_at=check_in_at or opportunity.start_at,
        ))

    async def team(self, organization: Organization, name: str = "Weekend crew") -> Team:
        return await self._add(Team(organization_id=organization.id, name=name))

    async def volunteers(self, organization: Organization, n: int, **membership) -> list:
        """Create ``n`` users, each with a membership in ``organization``"""
        users = []
        for _ in range(n):
            user = await self.user()
            await self.membership(organization, user, **membership)
            users.append(user)
        return users


@pytest.fixture
def factory(db_session: AsyncSession) -> DataFactory:
    return DataFactory(db_session)
