# ============================================================================
# Organization & Membership Models
# ============================================================================
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy import Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.core.database import Base

class OrganizationStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"

class MembershipStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"
    REJECTED = "rejected"

class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    status = Column(Enum(OrganizationStatus), nullable=False, default=OrganizationStatus.PENDING, index=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    memberships = relationship("OrganizationVolunteer", back_populates="organization", cascade="all, delete-orphan")
    requirements = relationship("ComplianceRequirement", back_populates="organization", cascade="all, delete-orphan")
    opportunities = relationship("Opportunity", back_populates="organization")
    teams = relationship("Team", back_populates="organization")

    def __repr__(self):
        return f"<Organization {self.name} ({self.status.value})>"

class OrganizationVolunteer(Base):
    """Membership of a user in an organization"""
    __tablename__ = "organization_volunteers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(MembershipStatus), nullable=False, default=MembershipStatus.PENDING)
    role = Column(String(30), default="volunteer")
    joined_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    organization = relationship("Organization", back_populates="memberships")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint('organization_id', 'user_id', name='unique_organization_volunteer'),
    )

class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    organization = relationship("Organization", back_populates="teams")
