"""Upload Reminder Engine - Services"""
from .locks import KeyedLock
from .repository import UploadReminderRepository
from .reminder_engine import UploadReminderEngine, UploadReminderScheduler

__all__ = [
    "KeyedLock",
    "UploadReminderRepository",
    "UploadReminderEngine",
    "UploadReminderScheduler",
]
