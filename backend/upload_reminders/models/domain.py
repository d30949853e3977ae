"""
Upload Reminder Engine - Domain Models

These dataclasses are the only structures passed between pipeline stages:
UploadEvent -> IntervalStatistics -> DocumentPattern -> MissingDocument
-> DocumentReminder. Persistence rows are mapped to and from them by the
repository; no service touches ORM rows directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


# =============================================================================
# ENUMS
# =============================================================================

class DocumentType(str, Enum):
    BANK_STATEMENT = "bank_statement"
    DIVIDEND_STATEMENT = "dividend_statement"
    PAYG_SUMMARY = "payg_summary"
    OTHER = "other"


class PatternFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half_yearly"
    YEARLY = "yearly"
    IRREGULAR = "irregular"
    UNKNOWN = "unknown"


class PatternStability(str, Enum):
    STABLE = "stable"
    CHANGING = "changing"
    VOLATILE = "volatile"


class PatternConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNCERTAIN = "uncertain"


class MissingDocumentStatus(str, Enum):
    """Lifecycle of a missing-document record. UPLOADED and DISMISSED are terminal."""
    PENDING = "pending"
    REMINDED = "reminded"
    UPLOADED = "uploaded"
    DISMISSED = "dismissed"


TERMINAL_STATUSES = {MissingDocumentStatus.UPLOADED, MissingDocumentStatus.DISMISSED}


class ReminderType(str, Enum):
    UPCOMING = "upcoming"
    OVERDUE = "overdue"
    FOLLOW_UP = "follow_up"
    FINAL_NOTICE = "final_notice"


class ReminderUrgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ReminderActionType(str, Enum):
    UPLOAD = "upload"
    VIEW = "view"
    SNOOZE = "snooze"
    DISMISS = "dismiss"
    CONTACT_SUPPORT = "contact_support"


class DeliveryChannel(str, Enum):
    APP = "app"
    EMAIL = "email"
    PUSH = "push"


class DeadlineType(str, Enum):
    CUSTOM = "CUSTOM"


DOCUMENT_TYPE_LABELS = {
    DocumentType.BANK_STATEMENT: "Bank Statement",
    DocumentType.DIVIDEND_STATEMENT: "Dividend Statement",
    DocumentType.PAYG_SUMMARY: "PAYG Summary",
    DocumentType.OTHER: "Document",
}

FREQUENCY_LABELS = {
    PatternFrequency.MONTHLY: "Monthly",
    PatternFrequency.QUARTERLY: "Quarterly",
    PatternFrequency.HALF_YEARLY: "Half-Yearly",
    PatternFrequency.YEARLY: "Yearly",
    PatternFrequency.IRREGULAR: "Irregular",
    PatternFrequency.UNKNOWN: "Unknown",
}


def get_document_type_label(document_type: DocumentType) -> str:
    return DOCUMENT_TYPE_LABELS.get(DocumentType(document_type), "Document")


def get_frequency_label(frequency: PatternFrequency) -> str:
    return FREQUENCY_LABELS[PatternFrequency(frequency)]


def as_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    """Normalize a date, datetime or ISO string to a calendar date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# INPUT: UPLOAD EVENTS
# =============================================================================

@dataclass(frozen=True)
class UploadEvent:
    """A single historical document upload. Raw, immutable input."""
    document_type: DocumentType
    source: str  # bank name, company name, employer name
    upload_date: Optional[date]
    id: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    tax_year: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{DocumentType(self.document_type).value}:{self.source}"


# =============================================================================
# PATTERN ANALYSIS OUTPUT
# =============================================================================

@dataclass
class IntervalStatistics:
    """Interval statistics for one upload history. Interval fields are None when count < 2."""
    count: int
    average_interval_days: Optional[float] = None
    stddev_interval_days: Optional[float] = None
    coefficient_of_variation: Optional[float] = None
    min_interval_days: Optional[int] = None
    max_interval_days: Optional[int] = None

    @property
    def consistency_score(self) -> float:
        if self.coefficient_of_variation is None:
            return 0.0
        return round(max(0.0, min(1.0, 1 - self.coefficient_of_variation)), 2)


@dataclass
class PatternChange:
    """A detected shift in a source's upload behaviour."""
    change_date: date
    from_frequency: PatternFrequency
    to_frequency: PatternFrequency
    from_stability: Optional[PatternStability] = None
    to_stability: Optional[PatternStability] = None
    reason: Optional[str] = None
    id: str = ""


@dataclass
class DocumentPattern:
    """Inferred periodicity and confidence for one (document_type, source) pair."""
    id: str
    document_type: DocumentType
    source: str
    frequency: PatternFrequency
    pattern_stability: PatternStability
    confidence: PatternConfidence
    statistics: IntervalStatistics
    uploads_analyzed: int
    next_expected_date: Optional[date] = None
    grace_period_days: int = 7
    pattern_changes: List[PatternChange] = field(default_factory=list)

    # Timing hints
    expected_day_of_month: Optional[int] = None
    expected_months: List[int] = field(default_factory=list)  # 1-12

    date_range_start: Optional[date] = None
    date_range_end: Optional[date] = None
    analysis_date: datetime = field(default_factory=utcnow)

    @property
    def average_interval_days(self) -> Optional[float]:
        return self.statistics.average_interval_days

    @property
    def last_upload_date(self) -> Optional[date]:
        return self.date_range_end


@dataclass
class PatternAnalysisResult:
    """Result of analysing a batch of upload histories."""
    patterns: List[DocumentPattern]
    total_sources: int
    patterns_detected: int
    errors: List[str] = field(default_factory=list)
    analyzed_at: datetime = field(default_factory=utcnow)


# =============================================================================
# MISSING DOCUMENT DETECTION OUTPUT
# =============================================================================

@dataclass
class MissingDocument:
    """A pattern whose predicted document is overdue (is_missing) or imminently due."""
    id: str
    pattern_id: str
    document_type: DocumentType
    source: str
    expected_date: date
    grace_period_end: date
    days_overdue: int
    is_missing: bool
    confidence: PatternConfidence
    historical_uploads: int
    last_upload_date: Optional[date] = None
    status: MissingDocumentStatus = MissingDocumentStatus.PENDING


@dataclass
class ExpectedDocument:
    """A document predicted to arrive within a look-ahead window."""
    id: str
    document_type: DocumentType
    source: str
    pattern_id: str
    estimated_arrival_date: date
    grace_period_end: date
    confidence: PatternConfidence
    pattern_type: PatternFrequency
    last_upload_date: Optional[date]
    uploads_count: int
    days_until_expected: int


# =============================================================================
# REMINDERS
# =============================================================================

@dataclass
class ReminderSettings:
    """Per-document-type reminder preferences."""
    document_type: DocumentType
    enabled: bool = True
    reminder_days_before: int = 3
    reminder_days_after: int = 7
    email_notifications: bool = False
    push_notifications: bool = True
    max_reminders: int = 3


@dataclass(frozen=True)
class ReminderSchedule:
    """Days before/after the expected date at which reminders go out."""
    before_due: tuple
    after_due: tuple
    max_reminders: int


@dataclass
class ReminderMessage:
    title: str
    body: str
    details: Optional[str] = None
    hint: Optional[str] = None


@dataclass
class ReminderAction:
    id: str
    label: str
    type: ReminderActionType
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DocumentReminder:
    """Ephemeral reminder handed to the delivery layer."""
    id: str
    missing_document_id: str
    document_type: DocumentType
    source: str
    reminder_type: ReminderType
    urgency: ReminderUrgency
    message: ReminderMessage
    actions: List[ReminderAction]
    scheduled_for: datetime


@dataclass
class ReminderGenerationResult:
    reminders: List[DocumentReminder]
    total_pending: int
    total_reminders: int
    by_type: Dict[ReminderType, int]
    by_urgency: Dict[ReminderUrgency, int]
    errors: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=utcnow)


@dataclass
class DeliveryResult:
    processed: int = 0
    sent: int = 0
    failed: int = 0
    by_channel: Dict[DeliveryChannel, int] = field(
        default_factory=lambda: {channel: 0 for channel in DeliveryChannel}
    )


# =============================================================================
# TAX CALENDAR
# =============================================================================

@dataclass
class TaxDeadline:
    """Synthetic calendar deadline created from a missing document."""
    id: str
    type: DeadlineType
    title: str
    description: str
    due_date: date
    metadata: Dict[str, Any] = field(default_factory=dict)
