"""
Missing Document Detector

Compares current DocumentPatterns against the uploads observed since each
prediction and emits MissingDocument records.

Windows relative to a pattern's next_expected_date:
- today < expected, within look-ahead   -> upcoming (is_missing=False)
- expected <= today <= grace_period_end -> silent grace, nothing emitted
- today > grace_period_end              -> overdue (is_missing=True)

The detector is stateless and idempotent per run. Record ids are derived
from the pattern and expected date, so re-running yields the same ids.
Status transitions (reminded, uploaded, dismissed) belong to the store.
"""
import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import Iterable, List, Optional

from ...config import EngineSettings, resolve_settings
from ...models.domain import (
    DocumentPattern, ExpectedDocument, MissingDocument, PatternConfidence,
    UploadEvent, as_date,
)


logger = logging.getLogger(__name__)


def generate_missing_id(pattern_id: str, expected_date: date) -> str:
    return f"missing-{pattern_id}-{expected_date.isoformat()}"


def has_upload_since(
    pattern: DocumentPattern,
    uploads: Iterable[UploadEvent],
    since: date,
) -> bool:
    """True if an upload for the pattern's (document_type, source) is dated on/after since."""
    for upload in uploads:
        if upload.upload_date is None:
            continue
        if (
            upload.document_type == pattern.document_type
            and upload.source == pattern.source
            and as_date(upload.upload_date) >= since
        ):
            return True
    return False


class MissingDocumentDetector:
    """
    Detects overdue and imminently-due documents from patterns.

    Grace periods are configuration, keyed by document type.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = resolve_settings(settings)

    def grace_period_end(self, pattern: DocumentPattern) -> date:
        grace_days = self.settings.grace_period_for(pattern.document_type.value)
        return pattern.next_expected_date + timedelta(days=grace_days)

    def evaluate_pattern(
        self,
        pattern: DocumentPattern,
        uploads: Iterable[UploadEvent],
        today: date,
    ) -> Optional[MissingDocument]:
        """Evaluate one pattern. Returns None when nothing should be emitted."""
        expected = pattern.next_expected_date
        if expected is None:
            return None

        if has_upload_since(pattern, uploads, expected):
            return None

        grace_end = self.grace_period_end(pattern)

        if today < expected:
            if (expected - today).days > self.settings.look_ahead_days:
                return None
            is_missing, days_overdue = False, 0
        elif today <= grace_end:
            return None
        else:
            is_missing, days_overdue = True, (today - grace_end).days

        return MissingDocument(
            id=generate_missing_id(pattern.id, expected),
            pattern_id=pattern.id,
            document_type=pattern.document_type,
            source=pattern.source,
            expected_date=expected,
            grace_period_end=grace_end,
            days_overdue=days_overdue,
            is_missing=is_missing,
            confidence=pattern.confidence,
            historical_uploads=pattern.uploads_analyzed,
            last_upload_date=pattern.last_upload_date,
        )

    def refresh(self, missing: MissingDocument, today: Optional[date] = None) -> MissingDocument:
        """Recompute is_missing and days_overdue of a stored record as of today."""
        today = today or date.today()
        is_missing = today > missing.grace_period_end
        days_overdue = (today - missing.grace_period_end).days if is_missing else 0
        return replace(missing, is_missing=is_missing, days_overdue=days_overdue)

    def detect(
        self,
        patterns: Iterable[DocumentPattern],
        uploads: Iterable[UploadEvent],
        today: Optional[date] = None,
    ) -> List[MissingDocument]:
        """
        Detect missing and upcoming documents.

        Returns overdue documents first (most overdue first), then upcoming
        documents soonest first.
        """
        today = today or date.today()
        uploads = list(uploads)

        found = []
        for pattern in patterns:
            missing = self.evaluate_pattern(pattern, uploads, today)
            if missing is not None:
                found.append(missing)

        overdue = sorted((m for m in found if m.is_missing), key=lambda m: -m.days_overdue)
        upcoming = sorted((m for m in found if not m.is_missing), key=lambda m: m.expected_date)

        logger.info(
            f"Missing document detection: {len(overdue)} overdue, {len(upcoming)} upcoming"
        )
        return overdue + upcoming

    def get_expected_documents(
        self,
        patterns: Iterable[DocumentPattern],
        days_ahead: int = 30,
        today: Optional[date] = None,
    ) -> List[ExpectedDocument]:
        """Documents predicted to arrive within days_ahead, soonest first."""
        today = today or date.today()
        cutoff = today + timedelta(days=days_ahead)

        expected = []
        for pattern in patterns:
            if pattern.next_expected_date is None:
                continue
            if pattern.confidence == PatternConfidence.UNCERTAIN:
                continue
            if pattern.next_expected_date > cutoff:
                continue

            expected.append(ExpectedDocument(
                id=f"expected-{pattern.id}-{pattern.next_expected_date.isoformat()}",
                document_type=pattern.document_type,
                source=pattern.source,
                pattern_id=pattern.id,
                estimated_arrival_date=pattern.next_expected_date,
                grace_period_end=self.grace_period_end(pattern),
                confidence=pattern.confidence,
                pattern_type=pattern.frequency,
                last_upload_date=pattern.last_upload_date,
                uploads_count=pattern.uploads_analyzed,
                days_until_expected=max(0, (pattern.next_expected_date - today).days),
            ))

        return sorted(expected, key=lambda e: e.days_until_expected)
