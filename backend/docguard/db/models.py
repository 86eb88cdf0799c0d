"""
SQLAlchemy ORM Models
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    TIMESTAMP,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from docguard.db.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# ============================================================================
# Enums
# ============================================================================

class DocumentStatus(str, enum.Enum):
    """Document lifecycle status (owned by the analysis pipeline)"""
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"

class ReviewStatus(str, enum.Enum):
    """Human review status (owned by the review workflow)"""
    pending = "pending"
    verified = "verified"
    rejected = "rejected"

class RiskLevel(str, enum.Enum):
    """Risk levels reported by the oracle"""
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

class Severity(str, enum.Enum):
    """Fraud flag severity"""
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

class NotificationType(str, enum.Enum):
    high_risk = "high_risk"
    analysis_complete = "analysis_complete"
    verified = "verified"
    rejected = "rejected"

class EntityType(str, enum.Enum):
    scan_result = "scan_result"
    document = "document"

class AuditAction(str, enum.Enum):
    """Closed set of audited actions"""
    document_upload = "document.upload"
    document_analyze = "document.analyze"
    document_delete = "document.delete"
    document_verify = "document.verify"
    document_reject = "document.reject"
    report_export = "report.export"
    settings_update = "settings.update"
    auth_login = "auth.login"
    auth_logout = "auth.logout"


# ============================================================================
# Models
# ============================================================================

class Document(Base):
    """Uploaded document and its analysis lifecycle"""
    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_user_status", "user_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Ownership
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    # File
    filename = Column(String(255), nullable=False)
    file_path = Column(String(512), nullable=False, unique=True)
    file_type = Column(String(100), nullable=False)
    file_size = Column(BigInteger, nullable=False)

    # Pipeline lifecycle
    status = Column(SQLEnum(DocumentStatus), nullable=False, default=DocumentStatus.pending)
    error_code = Column(String(50), nullable=True)
    error_message = Column(Text, nullable=True)

    # Human review (null until a verdict crosses the review threshold)
    review_status = Column(SQLEnum(ReviewStatus), nullable=True)
    reviewed_by = Column(UUID(as_uuid=True), nullable=True)
    reviewer_notes = Column(Text, nullable=True)
    reviewed_at = Column(TIMESTAMP, nullable=True)

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    scan_results = relationship(
        "ScanResult",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="ScanResult.created_at",
    )


class ScanResult(Base):
    """One immutable verdict per completed analysis attempt"""
    __tablename__ = "scan_results"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)

    overall_risk_score = Column(Integer, nullable=False, index=True)
    risk_level = Column(SQLEnum(RiskLevel), nullable=False)
    raw_ocr_text = Column(Text, nullable=True)
    document_type = Column(String(255), nullable=True)
    analysis_summary = Column(Text, nullable=True)
    passed_checks = Column(JSONType, nullable=False, default=list)
    is_degraded = Column(Boolean, nullable=False, default=False)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    document = relationship("Document", back_populates="scan_results")
    fraud_flags = relationship("FraudFlag", back_populates="scan_result", cascade="all, delete-orphan")
    extracted_fields = relationship("ExtractedField", back_populates="scan_result", cascade="all, delete-orphan")


class FraudFlag(Base):
    """A single detected anomaly"""
    __tablename__ = "fraud_flags"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    scan_result_id = Column(UUID(as_uuid=True), ForeignKey("scan_results.id", ondelete="CASCADE"), nullable=False, index=True)

    flag_type = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    severity = Column(SQLEnum(Severity), nullable=False, default=Severity.low)
    confidence = Column(Integer, nullable=False, default=50)
    evidence_reference = Column(Text, nullable=True)
    page_number = Column(Integer, nullable=True)
    # {"x", "y", "width", "height"} as percentages of the page
    region_coords = Column(JSONType, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    scan_result = relationship("ScanResult", back_populates="fraud_flags")


class ExtractedField(Base):
    """Key/value extracted from the document"""
    __tablename__ = "extracted_fields"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    scan_result_id = Column(UUID(as_uuid=True), ForeignKey("scan_results.id", ondelete="CASCADE"), nullable=False, index=True)

    field_name = Column(String(100), nullable=False)
    field_value = Column(Text, nullable=True)
    confidence = Column(Integer, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    scan_result = relationship("ScanResult", back_populates="extracted_fields")


class Notification(Base):
    """In-app notification"""
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    type = Column(SQLEnum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)

    entity_type = Column(SQLEnum(EntityType), nullable=True)
    entity_id = Column(UUID(as_uuid=True), nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)


class AuditLog(Base):
    """Append-only audit trail"""
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    action = Column(
        SQLEnum(AuditAction, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(UUID(as_uuid=True), nullable=True)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSONType, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
