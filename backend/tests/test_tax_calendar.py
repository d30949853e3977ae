"""
Tests for the Tax Calendar Bridge.
"""
import pytest
from datetime import date
from unittest.mock import MagicMock

from upload_reminders.models import (
    DeadlineType,
    DocumentType,
    MissingDocument,
    PatternConfidence,
)
from upload_reminders.services.reminders import (
    TaxCalendarBridge,
    create_tax_deadline_from_missing,
    is_upload_reminder_deadline,
)


def make_missing(confidence=PatternConfidence.HIGH, source="ANZ"):
    return MissingDocument(
        id=f"missing-pattern-bank_statement-{source.lower()}-2026-07-15",
        pattern_id=f"pattern-bank_statement-{source.lower()}",
        document_type=DocumentType.BANK_STATEMENT,
        source=source,
        expected_date=date(2026, 7, 15),
        grace_period_end=date(2026, 7, 20),
        days_overdue=5,
        is_missing=True,
        confidence=confidence,
        historical_uploads=6,
    )


class TestCreateTaxDeadline:

    def test_high_confidence_creates_custom_deadline(self):
        missing = make_missing()

        deadline = create_tax_deadline_from_missing(missing)

        assert deadline.id == f"deadline-{missing.id}"
        assert deadline.type == DeadlineType.CUSTOM
        assert deadline.title == "Upload Bank Statement"
        assert deadline.due_date == date(2026, 7, 15)
        assert "ANZ" in deadline.description
        assert deadline.metadata == {
            "is_upload_reminder": True,
            "missing_document_id": missing.id,
            "source": "ANZ",
            "document_type": "bank_statement",
            "pattern_id": "pattern-bank_statement-anz",
        }

    def test_medium_confidence_creates_deadline(self):
        assert create_tax_deadline_from_missing(make_missing(PatternConfidence.MEDIUM)) is not None

    @pytest.mark.parametrize("confidence", [PatternConfidence.LOW, PatternConfidence.UNCERTAIN])
    def test_low_confidence_never_reaches_calendar(self, confidence):
        assert create_tax_deadline_from_missing(make_missing(confidence)) is None


class TestIsUploadReminderDeadline:

    def test_bridge_deadline(self):
        assert is_upload_reminder_deadline(create_tax_deadline_from_missing(make_missing()))

    def test_dict_deadline(self):
        assert is_upload_reminder_deadline({"metadata": {"is_upload_reminder": True}})
        assert not is_upload_reminder_deadline({"metadata": {"is_upload_reminder": "true"}})
        assert not is_upload_reminder_deadline({"title": "BAS lodgement"})

    def test_object_without_metadata(self):
        assert not is_upload_reminder_deadline(object())


class TestTaxCalendarBridge:

    def test_sync_registers_only_eligible(self):
        calendar = MagicMock()
        bridge = TaxCalendarBridge(calendar)

        registered = bridge.sync([
            make_missing(PatternConfidence.HIGH, "ANZ"),
            make_missing(PatternConfidence.LOW, "NAB"),
            make_missing(PatternConfidence.MEDIUM, "Westpac"),
        ])

        assert [d.metadata["source"] for d in registered] == ["ANZ", "Westpac"]
        assert calendar.add_deadline.call_count == 2

    def test_register_returns_none_for_low(self):
        calendar = MagicMock()
        assert TaxCalendarBridge(calendar).register(make_missing(PatternConfidence.LOW)) is None
        calendar.add_deadline.assert_not_called()
