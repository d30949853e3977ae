"""
Upload Reminder Engine

Orchestrates the pipeline:
uploads -> patterns (persisted) -> missing documents -> reminders -> delivery

Key behaviors:
- Analyse each (document_type, source) independently; one bad source never
  aborts the batch
- One in-flight writer per (document_type, source) and per missing document
- Missing documents already uploaded/dismissed stay terminal
- Daily scheduler records every run with counts, duration and errors
"""
import logging
import time
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from ..config import EngineSettings, resolve_settings
from ..models.domain import (
    DeliveryChannel, DeliveryResult, DocumentPattern, DocumentReminder,
    ExpectedDocument, MissingDocument, MissingDocumentStatus, PatternAnalysisResult,
    ReminderGenerationResult, UploadEvent, as_date, utcnow,
)
from .locks import KeyedLock
from .patterns import (
    MissingDocumentDetector, PatternClassifier, analyze_upload_patterns,
    generate_pattern_id, group_uploads_by_source,
)
from .reminders import (
    InMemoryNotifier, Notifier, ReminderDispatcher, ReminderGenerator, TaxCalendarBridge,
)


logger = logging.getLogger(__name__)


# =============================================================================
# ENGINE
# =============================================================================

class UploadReminderEngine:
    """
    Entry point for the delivery/UI layer.

    Usage:
        engine = UploadReminderEngine(UploadReminderRepository(db))
        analysis = engine.run_analysis(uploads)
        missing = engine.detect_missing(engine.store.load_patterns(), uploads)
        result = engine.generate_reminders(missing)
        engine.process_due_reminders(result.reminders)
    """

    def __init__(
        self,
        store,
        settings: Optional[EngineSettings] = None,
        notifier: Optional[Notifier] = None,
        tax_calendar: Optional[TaxCalendarBridge] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self.store = store
        self.settings = resolve_settings(settings)
        self.locks = locks or KeyedLock()
        self.classifier = PatternClassifier(self.settings)
        self.detector = MissingDocumentDetector(self.settings)
        self.generator = ReminderGenerator(store, self.settings, tax_calendar=tax_calendar)
        self.dispatcher = ReminderDispatcher(store, notifier or InMemoryNotifier(), self.locks)

    # -------------------------------------------------------------------------
    # Pattern analysis
    # -------------------------------------------------------------------------

    def run_analysis(
        self,
        uploads: Iterable[UploadEvent],
        persist: bool = True,
    ) -> PatternAnalysisResult:
        """
        Recompute patterns for every (document_type, source) in uploads.

        With persist=False the patterns are computed against the stored
        history but nothing is written.
        """
        grouped = group_uploads_by_source(uploads)

        if not persist:
            previous = {p.id: p for p in self.store.load_patterns()}
            return analyze_upload_patterns(grouped, previous, self.classifier)

        patterns: List[DocumentPattern] = []
        errors: List[str] = []

        for key, group in grouped.items():
            with self.locks.hold(("pattern", key)):
                try:
                    document_type, source = key.split(":", 1)
                    previous = self.store.get_pattern(generate_pattern_id(document_type, source))
                    pattern = self.classifier.detect_pattern(
                        document_type, source, group, previous=previous
                    )
                    self.store.save_pattern(pattern)
                    patterns.append(pattern)
                except SQLAlchemyError:
                    # The session needs a rollback; later sources cannot flush
                    raise
                except Exception as e:
                    logger.error(f"Error analyzing {key}: {e}")
                    errors.append(f"Error analyzing {key}: {e}")

        self.store.commit()

        logger.info(
            f"Pattern analysis complete: {len(patterns)}/{len(grouped)} sources, "
            f"{len(errors)} errors"
        )
        return PatternAnalysisResult(
            patterns=patterns,
            total_sources=len(grouped),
            patterns_detected=len(patterns),
            errors=errors,
        )

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    def detect_missing(
        self,
        patterns: Iterable[DocumentPattern],
        uploads: Iterable[UploadEvent],
        today: Optional[date] = None,
    ) -> List[MissingDocument]:
        return self.detector.detect(patterns, uploads, today=today)

    def get_expected_documents(
        self,
        days_ahead: int = 30,
        today: Optional[date] = None,
    ) -> List[ExpectedDocument]:
        return self.detector.get_expected_documents(
            self.store.load_patterns(), days_ahead=days_ahead, today=today
        )

    def reconcile_uploads(self, uploads: Iterable[UploadEvent]) -> List[str]:
        """
        Mark pending missing documents as uploaded when a matching upload
        dated on/after the expected date has arrived.

        Returns the ids that were resolved.
        """
        uploads = [u for u in uploads if u.upload_date is not None]
        resolved = []

        for missing in self.store.get_pending_missing_documents():
            arrived = any(
                u.document_type == missing.document_type
                and u.source == missing.source
                and as_date(u.upload_date) >= missing.expected_date
                for u in uploads
            )
            if not arrived:
                continue
            with self.locks.hold(missing.id):
                self.store.update_missing_document_status(
                    missing.id, MissingDocumentStatus.UPLOADED
                )
            resolved.append(missing.id)

        if resolved:
            logger.info(f"Resolved {len(resolved)} missing documents from new uploads")
        return resolved

    def retire_superseded_missing_documents(
        self,
        detected: Iterable[MissingDocument],
        uploads: Iterable[UploadEvent],
    ) -> List[str]:
        """
        Mark active records uploaded when this run no longer emits them and
        the document has evidently arrived.

        An upload slightly before the expected date never satisfies
        reconcile_uploads, but it moves the pattern on. A record is retired
        when its pattern now predicts a later date, or when a matching upload
        is newer than the record's last known upload.
        """
        emitted = {m.id for m in detected}
        uploads = [u for u in uploads if u.upload_date is not None]
        retired = []

        for missing in self.store.get_pending_missing_documents():
            if missing.id in emitted:
                continue

            pattern = self.store.get_pattern(missing.pattern_id)
            repredicted = (
                pattern is not None
                and pattern.next_expected_date is not None
                and pattern.next_expected_date > missing.expected_date
            )
            newer_upload = missing.last_upload_date is not None and any(
                u.document_type == missing.document_type
                and u.source == missing.source
                and as_date(u.upload_date) > missing.last_upload_date
                for u in uploads
            )
            if not (repredicted or newer_upload):
                continue

            with self.locks.hold(missing.id):
                self.store.update_missing_document_status(
                    missing.id, MissingDocumentStatus.UPLOADED
                )
            retired.append(missing.id)

        if retired:
            logger.info(f"Retired {len(retired)} missing documents superseded by new uploads")
        return retired

    def list_missing_documents(
        self,
        status: Optional[MissingDocumentStatus] = None,
        today: Optional[date] = None,
    ) -> List[MissingDocument]:
        """
        Stored missing documents with overdue state recomputed for today.

        Without a status, pending and reminded documents, most overdue first.
        """
        today = today or date.today()
        if status is None:
            stored = self.store.get_pending_missing_documents()
        else:
            stored = self.store.get_missing_documents_by_status(status)

        refreshed = [self.detector.refresh(m, today) for m in stored]
        if status is None:
            refreshed.sort(key=lambda m: (-m.days_overdue, m.expected_date))
        return refreshed

    def update_missing_document_status(
        self,
        missing_document_id: str,
        status: MissingDocumentStatus,
    ) -> MissingDocument:
        with self.locks.hold(missing_document_id):
            missing = self.store.update_missing_document_status(missing_document_id, status)
        self.store.commit()
        return missing

    # -------------------------------------------------------------------------
    # Reminders
    # -------------------------------------------------------------------------

    def generate_reminders(
        self,
        missing_documents: Iterable[MissingDocument],
        respect_settings: bool = True,
    ) -> ReminderGenerationResult:
        return self.generator.generate_reminders(
            missing_documents, respect_settings=respect_settings
        )

    def process_due_reminders(
        self,
        reminders: Iterable[DocumentReminder],
        channels: Optional[List[DeliveryChannel]] = None,
        now: Optional[datetime] = None,
    ) -> DeliveryResult:
        result = self.dispatcher.process_due_reminders(reminders, channels=channels, now=now)
        self.store.commit()
        return result


# =============================================================================
# DAILY SCHEDULER (SYSTEM-AUTOMATIC)
# =============================================================================
#
# Invoked by cron or the internal scheduler endpoint. Retries and timeouts
# belong to the invoker; a run may be abandoned mid-batch and re-run.
#
# =============================================================================

class UploadReminderScheduler:
    """
    Daily upload reminder job.

    Actions:
    - Resolves missing documents whose uploads have arrived
    - Recomputes patterns for the supplied upload history
    - Detects missing/upcoming documents and persists them
    - Retires records superseded by early uploads
    - Generates reminders and delivers those that are due
    - Records the analysis run
    """

    def __init__(self, engine: UploadReminderEngine):
        self.engine = engine
        self.store = engine.store

    def run_daily_check(
        self,
        uploads: Iterable[UploadEvent],
        today: Optional[date] = None,
        now: Optional[datetime] = None,
        deliver: bool = True,
    ) -> Dict[str, Any]:
        started = time.monotonic()
        run_id = str(uuid4())
        now = now or utcnow()
        today = today or now.date()
        uploads = list(uploads)

        resolved = self.engine.reconcile_uploads(uploads)
        analysis = self.engine.run_analysis(uploads)

        detected = self.engine.detect_missing(self.store.load_patterns(), uploads, today=today)
        tracked = [self.store.save_missing_document(m) for m in detected]
        retired = self.engine.retire_superseded_missing_documents(detected, uploads)

        generation = self.engine.generate_reminders(tracked)

        delivery = None
        if deliver:
            delivery = self.engine.process_due_reminders(generation.reminders, now=now)

        errors = analysis.errors + generation.errors
        duration_ms = int((time.monotonic() - started) * 1000)

        self.store.record_analysis_run(
            run_id,
            total_sources=analysis.total_sources,
            patterns_detected=analysis.patterns_detected,
            missing_detected=len(detected),
            duration_ms=duration_ms,
            errors=errors,
        )
        self.store.commit()

        logger.info(
            f"Daily upload reminder check {run_id}: {analysis.patterns_detected} patterns, "
            f"{len(detected)} missing, {generation.total_reminders} reminders"
        )

        return {
            "run_id": run_id,
            "run_date": now.isoformat(),
            "resolved_uploads": len(resolved) + len(retired),
            "total_sources": analysis.total_sources,
            "patterns_detected": analysis.patterns_detected,
            "missing_detected": len(detected),
            "reminders_generated": generation.total_reminders,
            "reminders_sent": delivery.sent if delivery else 0,
            "reminders_failed": delivery.failed if delivery else 0,
            "duration_ms": duration_ms,
            "errors": errors,
        }
