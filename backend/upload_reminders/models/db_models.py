"""
Upload Reminder Engine - SQLAlchemy ORM Models
Persistent storage for patterns, missing documents, settings and run history
"""
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, JSON, ForeignKey,
    Enum as SQLEnum, Boolean, Date,
)
from sqlalchemy.orm import relationship

from ..database import Base
from .domain import (
    DocumentType, PatternFrequency, PatternStability, PatternConfidence,
    MissingDocumentStatus, DeliveryChannel,
)


class DocumentPatternDB(Base):
    """Detected upload pattern, one row per (document_type, source)."""
    __tablename__ = "document_upload_patterns"

    id = Column(String(255), primary_key=True)  # pattern-{type}-{source slug}
    document_type = Column(SQLEnum(DocumentType), nullable=False, index=True)
    source = Column(String(255), nullable=False, index=True)

    frequency = Column(SQLEnum(PatternFrequency), nullable=False, index=True)
    pattern_stability = Column(SQLEnum(PatternStability), nullable=False)
    confidence = Column(SQLEnum(PatternConfidence), nullable=False, index=True)

    expected_day_of_month = Column(Integer, nullable=True)
    expected_months = Column(JSON, nullable=True, default=list)

    uploads_analyzed = Column(Integer, nullable=False, default=0)
    date_range_start = Column(Date, nullable=True)
    date_range_end = Column(Date, nullable=True)
    next_expected_date = Column(Date, nullable=True, index=True)
    grace_period_days = Column(Integer, nullable=False, default=7)

    # Statistics
    avg_interval = Column(Float, nullable=True)
    interval_std_dev = Column(Float, nullable=True)
    min_interval = Column(Integer, nullable=True)
    max_interval = Column(Integer, nullable=True)
    coefficient_of_variation = Column(Float, nullable=True)

    analysis_date = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    changes = relationship(
        "PatternChangeDB",
        back_populates="pattern",
        cascade="all, delete-orphan",
        order_by="PatternChangeDB.position",
    )
    missing_documents = relationship(
        "MissingDocumentDB", back_populates="pattern", cascade="all, delete-orphan"
    )


class PatternChangeDB(Base):
    """Pattern change history."""
    __tablename__ = "document_pattern_changes"

    id = Column(String(512), primary_key=True)
    pattern_id = Column(
        String(255), ForeignKey("document_upload_patterns.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    position = Column(Integer, nullable=False, default=0)

    change_date = Column(Date, nullable=False)
    from_frequency = Column(SQLEnum(PatternFrequency), nullable=False)
    to_frequency = Column(SQLEnum(PatternFrequency), nullable=False)
    from_stability = Column(SQLEnum(PatternStability), nullable=True)
    to_stability = Column(SQLEnum(PatternStability), nullable=True)
    reason = Column(Text, nullable=True)
    detected_at = Column(DateTime, default=datetime.utcnow)

    pattern = relationship("DocumentPatternDB", back_populates="changes")


class MissingDocumentDB(Base):
    """Missing document tracking. Status transitions are owned by this table."""
    __tablename__ = "missing_documents"

    id = Column(String(300), primary_key=True)  # missing-{pattern_id}-{expected_date}
    pattern_id = Column(
        String(255), ForeignKey("document_upload_patterns.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    document_type = Column(SQLEnum(DocumentType), nullable=False)
    source = Column(String(255), nullable=False)

    expected_date = Column(Date, nullable=False, index=True)
    grace_period_end = Column(Date, nullable=False)
    days_overdue = Column(Integer, nullable=False, default=0)
    is_missing = Column(Boolean, nullable=False, default=False)
    confidence = Column(SQLEnum(PatternConfidence), nullable=False)
    last_upload_date = Column(Date, nullable=True)
    historical_uploads = Column(Integer, nullable=False, default=0)

    status = Column(
        SQLEnum(MissingDocumentStatus), nullable=False,
        default=MissingDocumentStatus.PENDING, index=True,
    )
    detected_at = Column(DateTime, default=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True)

    pattern = relationship("DocumentPatternDB", back_populates="missing_documents")
    history = relationship(
        "ReminderHistoryDB", back_populates="missing_document", cascade="all, delete-orphan"
    )


class ReminderSettingsDB(Base):
    """Reminder settings per document type."""
    __tablename__ = "upload_reminder_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_type = Column(SQLEnum(DocumentType), nullable=False, unique=True)
    enabled = Column(Boolean, nullable=False, default=True)
    reminder_days_before = Column(Integer, nullable=False, default=3)
    reminder_days_after = Column(Integer, nullable=False, default=7)
    email_notifications = Column(Boolean, nullable=False, default=False)
    push_notifications = Column(Boolean, nullable=False, default=True)
    max_reminders = Column(Integer, nullable=False, default=3)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ReminderHistoryDB(Base):
    """One row per reminder delivered on one channel."""
    __tablename__ = "upload_reminder_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    missing_document_id = Column(
        String(300), ForeignKey("missing_documents.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    reminder_id = Column(String(320), nullable=False, index=True)  # one id per generated reminder
    reminder_type = Column(String(20), nullable=False)  # before_due, after_due, follow_up
    sent_via = Column(SQLEnum(DeliveryChannel), nullable=False)
    sent_at = Column(DateTime, default=datetime.utcnow)
    acknowledged = Column(Boolean, nullable=False, default=False)
    acknowledged_at = Column(DateTime, nullable=True)

    missing_document = relationship("MissingDocumentDB", back_populates="history")


class AnalysisRunDB(Base):
    """Pattern analysis run metadata."""
    __tablename__ = "upload_pattern_analysis_runs"

    id = Column(String(36), primary_key=True)  # UUID
    analysis_date = Column(DateTime, default=datetime.utcnow, index=True)
    total_sources = Column(Integer, default=0)
    patterns_detected = Column(Integer, default=0)
    missing_detected = Column(Integer, default=0)
    analysis_duration_ms = Column(Integer, nullable=True)
    status = Column(String(30), default="completed")  # completed, completed_with_errors
    error_log = Column(JSON, nullable=True, default=list)
