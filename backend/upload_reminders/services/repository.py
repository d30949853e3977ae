"""
Upload Reminder Repository

SQLAlchemy persistence for patterns, missing documents, reminder settings,
reminder history and analysis runs. Maps ORM rows to and from the domain
dataclasses; services never see ORM rows.

Methods flush but do not commit. The caller that owns the unit of work
(scheduler run, API request) commits.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..exceptions import (
    InvalidStatusTransitionError, MissingDocumentNotFoundError, PatternNotFoundError,
)
from ..models.db_models import (
    AnalysisRunDB, DocumentPatternDB, MissingDocumentDB, PatternChangeDB,
    ReminderHistoryDB, ReminderSettingsDB,
)
from ..models.domain import (
    TERMINAL_STATUSES, DeliveryChannel, DocumentPattern, DocumentType,
    IntervalStatistics, MissingDocument, MissingDocumentStatus, PatternChange,
    ReminderSettings, utcnow,
)


ACTIVE_STATUSES = (MissingDocumentStatus.PENDING, MissingDocumentStatus.REMINDED)

SETTINGS_FIELDS = (
    "enabled",
    "reminder_days_before",
    "reminder_days_after",
    "email_notifications",
    "push_notifications",
    "max_reminders",
)


class UploadReminderRepository:
    """Persistence collaborator for the upload reminder engine."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def commit(self) -> None:
        self.db.commit()

    # =========================================================================
    # PATTERNS
    # =========================================================================

    def _to_pattern(self, row: DocumentPatternDB) -> DocumentPattern:
        statistics = IntervalStatistics(
            count=row.uploads_analyzed,
            average_interval_days=row.avg_interval,
            stddev_interval_days=row.interval_std_dev,
            coefficient_of_variation=row.coefficient_of_variation,
            min_interval_days=row.min_interval,
            max_interval_days=row.max_interval,
        )
        changes = [
            PatternChange(
                id=c.id,
                change_date=c.change_date,
                from_frequency=c.from_frequency,
                to_frequency=c.to_frequency,
                from_stability=c.from_stability,
                to_stability=c.to_stability,
                reason=c.reason,
            )
            for c in row.changes
        ]
        return DocumentPattern(
            id=row.id,
            document_type=row.document_type,
            source=row.source,
            frequency=row.frequency,
            pattern_stability=row.pattern_stability,
            confidence=row.confidence,
            statistics=statistics,
            uploads_analyzed=row.uploads_analyzed,
            next_expected_date=row.next_expected_date,
            grace_period_days=row.grace_period_days,
            pattern_changes=changes,
            expected_day_of_month=row.expected_day_of_month,
            expected_months=list(row.expected_months or []),
            date_range_start=row.date_range_start,
            date_range_end=row.date_range_end,
            analysis_date=row.analysis_date,
        )

    def load_patterns(self) -> List[DocumentPattern]:
        rows = self.db.query(DocumentPatternDB).order_by(
            DocumentPatternDB.document_type, DocumentPatternDB.source
        ).all()
        return [self._to_pattern(row) for row in rows]

    def get_pattern(self, pattern_id: str) -> Optional[DocumentPattern]:
        row = self.db.query(DocumentPatternDB).get(pattern_id)
        return self._to_pattern(row) if row else None

    def get_patterns_by_document_type(self, document_type: DocumentType) -> List[DocumentPattern]:
        rows = self.db.query(DocumentPatternDB).filter(
            DocumentPatternDB.document_type == DocumentType(document_type)
        ).all()
        return [self._to_pattern(row) for row in rows]

    def get_patterns_by_source(self, source: str) -> List[DocumentPattern]:
        rows = self.db.query(DocumentPatternDB).filter(
            DocumentPatternDB.source == source
        ).all()
        return [self._to_pattern(row) for row in rows]

    def save_pattern(self, pattern: DocumentPattern) -> DocumentPattern:
        """Insert or replace a pattern. The change history is replaced wholesale."""
        row = self.db.query(DocumentPatternDB).get(pattern.id)
        if row is None:
            row = DocumentPatternDB(id=pattern.id)
            self.db.add(row)

        stats = pattern.statistics
        row.document_type = DocumentType(pattern.document_type)
        row.source = pattern.source
        row.frequency = pattern.frequency
        row.pattern_stability = pattern.pattern_stability
        row.confidence = pattern.confidence
        row.expected_day_of_month = pattern.expected_day_of_month
        row.expected_months = list(pattern.expected_months)
        row.uploads_analyzed = pattern.uploads_analyzed
        row.date_range_start = pattern.date_range_start
        row.date_range_end = pattern.date_range_end
        row.next_expected_date = pattern.next_expected_date
        row.grace_period_days = pattern.grace_period_days
        row.avg_interval = stats.average_interval_days
        row.interval_std_dev = stats.stddev_interval_days
        row.min_interval = stats.min_interval_days
        row.max_interval = stats.max_interval_days
        row.coefficient_of_variation = stats.coefficient_of_variation
        row.analysis_date = pattern.analysis_date

        existing = {c.id: c for c in row.changes}
        changes = []
        for position, change in enumerate(pattern.pattern_changes):
            change_row = existing.get(change.id) or PatternChangeDB(id=change.id)
            change_row.position = position
            change_row.change_date = change.change_date
            change_row.from_frequency = change.from_frequency
            change_row.to_frequency = change.to_frequency
            change_row.from_stability = change.from_stability
            change_row.to_stability = change.to_stability
            change_row.reason = change.reason
            changes.append(change_row)
        row.changes = changes

        self.db.flush()
        return pattern

    def delete_pattern(self, pattern_id: str) -> None:
        row = self.db.query(DocumentPatternDB).get(pattern_id)
        if row is None:
            raise PatternNotFoundError(pattern_id)
        self.db.delete(row)
        self.db.flush()

    # =========================================================================
    # MISSING DOCUMENTS
    # =========================================================================

    def _to_missing(self, row: MissingDocumentDB) -> MissingDocument:
        return MissingDocument(
            id=row.id,
            pattern_id=row.pattern_id,
            document_type=row.document_type,
            source=row.source,
            expected_date=row.expected_date,
            grace_period_end=row.grace_period_end,
            days_overdue=row.days_overdue,
            is_missing=row.is_missing,
            confidence=row.confidence,
            historical_uploads=row.historical_uploads,
            last_upload_date=row.last_upload_date,
            status=row.status,
        )

    def save_missing_document(self, missing: MissingDocument) -> MissingDocument:
        """
        Insert or refresh a detection result.

        An existing record keeps its stored status so dismissed or uploaded
        documents stay terminal across detection runs.
        """
        row = self.db.query(MissingDocumentDB).get(missing.id)
        if row is None:
            row = MissingDocumentDB(id=missing.id, status=MissingDocumentStatus(missing.status))
            self.db.add(row)

        row.pattern_id = missing.pattern_id
        row.document_type = DocumentType(missing.document_type)
        row.source = missing.source
        row.expected_date = missing.expected_date
        row.grace_period_end = missing.grace_period_end
        row.days_overdue = missing.days_overdue
        row.is_missing = missing.is_missing
        row.confidence = missing.confidence
        row.last_upload_date = missing.last_upload_date
        row.historical_uploads = missing.historical_uploads

        self.db.flush()
        return self._to_missing(row)

    def get_missing_document(self, missing_document_id: str) -> Optional[MissingDocument]:
        row = self.db.query(MissingDocumentDB).get(missing_document_id)
        return self._to_missing(row) if row else None

    def get_pending_missing_documents(self) -> List[MissingDocument]:
        """Pending and reminded documents, most overdue first."""
        rows = self.db.query(MissingDocumentDB).filter(
            MissingDocumentDB.status.in_(ACTIVE_STATUSES)
        ).order_by(MissingDocumentDB.days_overdue.desc(), MissingDocumentDB.expected_date).all()
        return [self._to_missing(row) for row in rows]

    def get_missing_documents_by_status(
        self,
        status: MissingDocumentStatus,
    ) -> List[MissingDocument]:
        rows = self.db.query(MissingDocumentDB).filter(
            MissingDocumentDB.status == MissingDocumentStatus(status)
        ).order_by(MissingDocumentDB.expected_date).all()
        return [self._to_missing(row) for row in rows]

    def update_missing_document_status(
        self,
        missing_document_id: str,
        status: MissingDocumentStatus,
    ) -> MissingDocument:
        """
        Move a missing document to a new status.

        Terminal statuses (uploaded, dismissed) cannot be left.
        """
        status = MissingDocumentStatus(status)
        row = self.db.query(MissingDocumentDB).get(missing_document_id)
        if row is None:
            raise MissingDocumentNotFoundError(missing_document_id)

        current = MissingDocumentStatus(row.status)
        if current == status:
            return self._to_missing(row)
        if current in TERMINAL_STATUSES:
            raise InvalidStatusTransitionError(missing_document_id, current.value, status.value)

        row.status = status
        if status in TERMINAL_STATUSES:
            row.resolved_at = utcnow()

        self.db.flush()
        return self._to_missing(row)

    def mark_missing_document_uploaded(self, missing_document_id: str) -> MissingDocument:
        return self.update_missing_document_status(
            missing_document_id, MissingDocumentStatus.UPLOADED
        )

    def dismiss_missing_document(self, missing_document_id: str) -> MissingDocument:
        return self.update_missing_document_status(
            missing_document_id, MissingDocumentStatus.DISMISSED
        )

    # =========================================================================
    # REMINDER SETTINGS
    # =========================================================================

    def _to_settings(self, row: ReminderSettingsDB) -> ReminderSettings:
        return ReminderSettings(
            document_type=row.document_type,
            enabled=row.enabled,
            reminder_days_before=row.reminder_days_before,
            reminder_days_after=row.reminder_days_after,
            email_notifications=row.email_notifications,
            push_notifications=row.push_notifications,
            max_reminders=row.max_reminders,
        )

    def load_reminder_settings(self, document_type: DocumentType) -> Optional[ReminderSettings]:
        """Stored settings for a document type, or None when never configured."""
        row = self.db.query(ReminderSettingsDB).filter(
            ReminderSettingsDB.document_type == DocumentType(document_type)
        ).first()
        return self._to_settings(row) if row else None

    def get_all_reminder_settings(self) -> List[ReminderSettings]:
        """Settings for every document type, defaults filled in."""
        return [
            self.load_reminder_settings(document_type)
            or ReminderSettings(document_type=document_type)
            for document_type in DocumentType
        ]

    def update_reminder_settings(
        self,
        document_type: DocumentType,
        **changes: Any,
    ) -> ReminderSettings:
        """Merge a partial update into the stored (or default) settings."""
        document_type = DocumentType(document_type)
        unknown = set(changes) - set(SETTINGS_FIELDS)
        if unknown:
            raise ValueError(f"Unknown reminder settings: {', '.join(sorted(unknown))}")

        row = self.db.query(ReminderSettingsDB).filter(
            ReminderSettingsDB.document_type == document_type
        ).first()
        if row is None:
            defaults = ReminderSettings(document_type=document_type)
            row = ReminderSettingsDB(
                document_type=document_type,
                **{field: getattr(defaults, field) for field in SETTINGS_FIELDS},
            )
            self.db.add(row)

        for field, value in changes.items():
            if value is not None:
                setattr(row, field, value)
        row.updated_at = datetime.utcnow()

        self.db.flush()
        return self._to_settings(row)

    # =========================================================================
    # REMINDER HISTORY
    # =========================================================================

    def record_reminder_sent(
        self,
        missing_document_id: str,
        reminder_id: str,
        reminder_type: str,
        channel: DeliveryChannel,
    ) -> int:
        entry = ReminderHistoryDB(
            missing_document_id=missing_document_id,
            reminder_id=reminder_id,
            reminder_type=reminder_type,
            sent_via=DeliveryChannel(channel),
        )
        self.db.add(entry)
        self.db.flush()
        return entry.id

    def get_reminder_count(self, missing_document_id: str) -> int:
        """Distinct reminders sent; multi-channel delivery of one reminder counts once."""
        return self.db.query(
            func.count(func.distinct(ReminderHistoryDB.reminder_id))
        ).filter(
            ReminderHistoryDB.missing_document_id == missing_document_id
        ).scalar() or 0

    def get_reminders_for_missing_document(self, missing_document_id: str) -> List[Dict[str, Any]]:
        rows = self.db.query(ReminderHistoryDB).filter(
            ReminderHistoryDB.missing_document_id == missing_document_id
        ).order_by(ReminderHistoryDB.sent_at.desc()).all()
        return [
            {
                "id": r.id,
                "reminder_id": r.reminder_id,
                "reminder_type": r.reminder_type,
                "sent_via": r.sent_via.value,
                "sent_at": r.sent_at.isoformat() if r.sent_at else None,
                "acknowledged": r.acknowledged,
            }
            for r in rows
        ]

    # =========================================================================
    # ANALYSIS RUNS
    # =========================================================================

    def record_analysis_run(
        self,
        run_id: str,
        total_sources: int,
        patterns_detected: int,
        missing_detected: int,
        duration_ms: int,
        errors: List[str],
    ) -> None:
        self.db.add(AnalysisRunDB(
            id=run_id,
            total_sources=total_sources,
            patterns_detected=patterns_detected,
            missing_detected=missing_detected,
            analysis_duration_ms=duration_ms,
            status="completed_with_errors" if errors else "completed",
            error_log=list(errors),
        ))
        self.db.flush()

    def get_latest_analysis_run(self) -> Optional[Dict[str, Any]]:
        row = self.db.query(AnalysisRunDB).order_by(AnalysisRunDB.analysis_date.desc()).first()
        if row is None:
            return None
        return {
            "id": row.id,
            "analysis_date": row.analysis_date.isoformat() if row.analysis_date else None,
            "total_sources": row.total_sources,
            "patterns_detected": row.patterns_detected,
            "missing_detected": row.missing_detected,
            "analysis_duration_ms": row.analysis_duration_ms,
            "status": row.status,
            "errors": row.error_log or [],
        }
