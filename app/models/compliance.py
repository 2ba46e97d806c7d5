# ============================================================================
# Compliance Models
# ============================================================================
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy import Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.core.database import Base

class DocumentStatus(str, enum.Enum):
    VALID = "Valid"
    PENDING = "Pending"
    REJECTED = "Rejected"
    EXPIRED = "Expired"

class ComplianceRequirement(Base):
    """A document type an organization asks its volunteers to hold"""
    __tablename__ = "compliance_requirements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    doc_type = Column(String(50), nullable=False, index=True)  # e.g. WWCC, police_check
    name = Column(String(200))
    is_mandatory = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    organization = relationship("Organization", back_populates="requirements")

    def __repr__(self):
        return f"<ComplianceRequirement {self.doc_type} org={self.organization_id}>"

class ComplianceDocument(Base):
    """A document held by a user, matched to requirements by doc_type"""
    __tablename__ = "compliance_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    doc_type = Column(String(50), nullable=False, index=True)
    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.PENDING)
    issued_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True, index=True)  # NULL = never expires
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="compliance_documents")
