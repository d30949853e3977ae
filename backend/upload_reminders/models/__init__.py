"""Upload Reminder Engine - Data Models"""
from .domain import (
    # Enums
    DocumentType, PatternFrequency, PatternStability, PatternConfidence,
    MissingDocumentStatus, ReminderType, ReminderUrgency, ReminderActionType,
    DeliveryChannel, DeadlineType, TERMINAL_STATUSES,
    # Pattern analysis
    UploadEvent, IntervalStatistics, PatternChange, DocumentPattern, PatternAnalysisResult,
    # Detection
    MissingDocument, ExpectedDocument,
    # Reminders
    ReminderSettings, ReminderSchedule, ReminderMessage, ReminderAction,
    DocumentReminder, ReminderGenerationResult, DeliveryResult,
    # Calendar
    TaxDeadline,
)

__all__ = [
    "DocumentType", "PatternFrequency", "PatternStability", "PatternConfidence",
    "MissingDocumentStatus", "ReminderType", "ReminderUrgency", "ReminderActionType",
    "DeliveryChannel", "DeadlineType", "TERMINAL_STATUSES",
    "UploadEvent", "IntervalStatistics", "PatternChange", "DocumentPattern", "PatternAnalysisResult",
    "MissingDocument", "ExpectedDocument",
    "ReminderSettings", "ReminderSchedule", "ReminderMessage", "ReminderAction",
    "DocumentReminder", "ReminderGenerationResult", "DeliveryResult",
    "TaxDeadline",
]
