"""
Reminder Scheduler

Static per-document-type reminder schedules and the pure next-send-date
calculation. No clock is consulted here.
"""
from datetime import date, timedelta
from typing import Optional, Sequence

from ...models.domain import DocumentType, MissingDocument, ReminderSchedule


# =============================================================================
# SCHEDULE CONFIGURATION
# =============================================================================

DEFAULT_SCHEDULE = ReminderSchedule(
    before_due=(7, 3, 1),   # 1 week, 3 days, 1 day before
    after_due=(1, 3, 7),    # 1 day, 3 days, 1 week after
    max_reminders=5,
)

DOCUMENT_TYPE_SCHEDULES = {
    DocumentType.BANK_STATEMENT: ReminderSchedule(
        before_due=(3, 1),
        after_due=(3, 7),
        max_reminders=4,
    ),
    DocumentType.DIVIDEND_STATEMENT: ReminderSchedule(
        before_due=(7, 3),
        after_due=(7, 14),
        max_reminders=4,
    ),
    DocumentType.PAYG_SUMMARY: ReminderSchedule(
        before_due=(14, 7, 3),
        after_due=(7, 14, 21),
        max_reminders=6,
    ),
    DocumentType.OTHER: ReminderSchedule(
        before_due=(7, 3, 1),
        after_due=(3, 7),
        max_reminders=5,
    ),
}


def get_reminder_schedule(document_type) -> ReminderSchedule:
    """Schedule for a document type; unknown types get DEFAULT_SCHEDULE."""
    try:
        return DOCUMENT_TYPE_SCHEDULES.get(DocumentType(document_type), DEFAULT_SCHEDULE)
    except ValueError:
        return DEFAULT_SCHEDULE


def _schedule_entry(offsets: Sequence[int], index: int) -> int:
    # Past the end of the table the last offset repeats until the cap
    return offsets[min(index, len(offsets) - 1)]


def calculate_next_reminder_date(
    missing: MissingDocument,
    reminders_sent: int,
    schedule: Optional[ReminderSchedule] = None,
) -> Optional[date]:
    """
    Next eligible send date for a missing document.

    Returns None once reminders_sent reaches the schedule's max_reminders.
    Before the due date: expected_date - before_due[reminders_sent].
    After the due date: expected_date + after_due[reminders_sent].
    """
    schedule = schedule or get_reminder_schedule(missing.document_type)

    if reminders_sent >= schedule.max_reminders:
        return None

    index = max(0, reminders_sent)
    if not missing.is_missing:
        return missing.expected_date - timedelta(days=_schedule_entry(schedule.before_due, index))

    return missing.expected_date + timedelta(days=_schedule_entry(schedule.after_due, index))
