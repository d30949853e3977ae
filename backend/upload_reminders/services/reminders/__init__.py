"""
Reminder Services

MissingDocument -> DocumentReminder -> delivery / tax calendar.
"""

from .schedule import (
    DEFAULT_SCHEDULE,
    DOCUMENT_TYPE_SCHEDULES,
    get_reminder_schedule,
    calculate_next_reminder_date,
)
from .generator import (
    ReminderGenerator,
    group_reminders_by_urgency,
    group_reminders_by_type,
)
from .delivery import Notifier, InMemoryNotifier, ReminderDispatcher
from .tax_calendar import (
    TaxCalendarBridge,
    create_tax_deadline_from_missing,
    is_upload_reminder_deadline,
)

__all__ = [
    'DEFAULT_SCHEDULE',
    'DOCUMENT_TYPE_SCHEDULES',
    'get_reminder_schedule',
    'calculate_next_reminder_date',
    'ReminderGenerator',
    'group_reminders_by_urgency',
    'group_reminders_by_type',
    'Notifier',
    'InMemoryNotifier',
    'ReminderDispatcher',
    'TaxCalendarBridge',
    'create_tax_deadline_from_missing',
    'is_upload_reminder_deadline',
]
