"""
Reminder Generator

Turns MissingDocument records into prioritized DocumentReminders.

Per item:
1. Skip terminal records (uploaded / dismissed)
2. Skip disabled document types when settings are respected
3. Skip items that already reached max_reminders
4. Classify reminder type and urgency from days_overdue
5. Compose message and actions from templates
6. Schedule via calculate_next_reminder_date (None = exhausted, skip)

Each item only reads its own MissingDocument plus the shared read-only
settings and schedule tables, so items are independent of each other.
"""
import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from ...config import EngineSettings, resolve_settings
from ...models.domain import (
    TERMINAL_STATUSES, DocumentReminder, DocumentType, MissingDocument,
    MissingDocumentStatus, ReminderAction, ReminderActionType,
    ReminderGenerationResult, ReminderMessage, ReminderSettings, ReminderType,
    ReminderUrgency, get_document_type_label,
)
from .schedule import calculate_next_reminder_date
from .tax_calendar import TaxCalendarBridge


logger = logging.getLogger(__name__)


# =============================================================================
# MESSAGE TEMPLATES
# =============================================================================

MESSAGE_TEMPLATES = {
    ReminderType.UPCOMING: {
        "title": "{label} Expected Soon",
        "body": "Your {source} {label_lower} is expected around {expected}.",
        "details": "Based on your upload history, we expect this document to arrive soon.",
        "hint": "You'll be reminded again if it doesn't arrive on time.",
    },
    ReminderType.OVERDUE: {
        "title": "{label} Overdue",
        "body": "Your {source} {label_lower} was expected on {expected}.",
        "details": "It's been {days} day{plural} since we expected this document.",
        "hint": "Please upload it when available or dismiss this reminder if not applicable.",
    },
    ReminderType.FOLLOW_UP: {
        "title": "Reminder: {label} Still Missing",
        "body": "Your {source} {label_lower} is still overdue ({days} days).",
        "details": "This document is important for your tax preparation.",
        "hint": "If you don't have this document, you may need to contact {source} directly.",
    },
    ReminderType.FINAL_NOTICE: {
        "title": "Final Notice: {label} Required",
        "body": "Your {source} {label_lower} is significantly overdue ({days} days).",
        "details": "Without this document, your tax return may be incomplete.",
        "hint": "Please upload immediately or contact your tax agent for assistance.",
    },
}

URGENCY_BY_TYPE = {
    ReminderType.UPCOMING: ReminderUrgency.LOW,
    ReminderType.OVERDUE: ReminderUrgency.HIGH,
    ReminderType.FOLLOW_UP: ReminderUrgency.HIGH,
    ReminderType.FINAL_NOTICE: ReminderUrgency.CRITICAL,
}


def format_display_date(value: date) -> str:
    """15 Jul 2026"""
    return f"{value.day} {value.strftime('%b %Y')}"


def default_reminder_settings(document_type: DocumentType) -> ReminderSettings:
    return ReminderSettings(document_type=DocumentType(document_type))


# =============================================================================
# REMINDER GENERATOR
# =============================================================================

class ReminderGenerator:
    """
    Generates reminders for missing documents.

    The store must provide load_reminder_settings(document_type) and
    get_reminder_count(missing_document_id).

    Usage:
        generator = ReminderGenerator(store)
        result = generator.generate_reminders(missing_documents)
    """

    def __init__(
        self,
        store,
        settings: Optional[EngineSettings] = None,
        tax_calendar: Optional[TaxCalendarBridge] = None,
    ):
        self.store = store
        self.settings = resolve_settings(settings)
        self.tax_calendar = tax_calendar

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def determine_reminder_type(self, missing: MissingDocument) -> ReminderType:
        if not missing.is_missing:
            return ReminderType.UPCOMING
        if missing.days_overdue <= self.settings.overdue_threshold_days:
            return ReminderType.OVERDUE
        if missing.days_overdue <= self.settings.follow_up_threshold_days:
            return ReminderType.FOLLOW_UP
        return ReminderType.FINAL_NOTICE

    def determine_urgency(self, reminder_type: ReminderType) -> ReminderUrgency:
        return URGENCY_BY_TYPE[reminder_type]

    # -------------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------------

    def build_message(
        self,
        missing: MissingDocument,
        reminder_type: ReminderType,
    ) -> ReminderMessage:
        label = get_document_type_label(missing.document_type)
        values = {
            "label": label,
            "label_lower": label.lower(),
            "source": missing.source,
            "expected": format_display_date(missing.expected_date),
            "days": missing.days_overdue,
            "plural": "" if missing.days_overdue == 1 else "s",
        }
        template = MESSAGE_TEMPLATES[reminder_type]
        return ReminderMessage(
            title=template["title"].format(**values),
            body=template["body"].format(**values),
            details=template["details"].format(**values),
            hint=template["hint"].format(**values),
        )

    def build_actions(
        self,
        missing: MissingDocument,
        reminder_type: ReminderType,
    ) -> List[ReminderAction]:
        actions = [
            ReminderAction(
                id="upload",
                label="Upload Now",
                type=ReminderActionType.UPLOAD,
                data={
                    "document_type": DocumentType(missing.document_type).value,
                    "source": missing.source,
                    "missing_document_id": missing.id,
                },
            ),
            ReminderAction(
                id="view",
                label="View Details",
                type=ReminderActionType.VIEW,
                data={"missing_document_id": missing.id},
            ),
        ]

        if reminder_type != ReminderType.UPCOMING:
            actions.append(ReminderAction(
                id="snooze",
                label="Remind Later",
                type=ReminderActionType.SNOOZE,
                data={"missing_document_id": missing.id, "days": self.settings.snooze_days},
            ))

        if reminder_type == ReminderType.FINAL_NOTICE:
            actions.append(ReminderAction(
                id="contact_support",
                label="Contact Tax Agent",
                type=ReminderActionType.CONTACT_SUPPORT,
                data={"missing_document_id": missing.id, "source": missing.source},
            ))

        actions.append(ReminderAction(
            id="dismiss",
            label="Dismiss",
            type=ReminderActionType.DISMISS,
            data={"missing_document_id": missing.id},
        ))

        return actions

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def _resolve_settings(
        self,
        document_type: DocumentType,
        cache: Dict[DocumentType, ReminderSettings],
        errors: List[str],
    ) -> ReminderSettings:
        document_type = DocumentType(document_type)
        if document_type not in cache:
            loaded = self.store.load_reminder_settings(document_type)
            if loaded is None:
                warning = (
                    f"No reminder settings for {document_type.value}, using defaults"
                )
                logger.warning(warning)
                errors.append(warning)
                loaded = default_reminder_settings(document_type)
            cache[document_type] = loaded
        return cache[document_type]

    def build_reminder(
        self,
        missing: MissingDocument,
        reminder_settings: ReminderSettings,
        reminders_sent: int,
        respect_settings: bool = True,
    ) -> Optional[DocumentReminder]:
        """Reminder for one missing document, or None when it must be skipped."""
        if MissingDocumentStatus(missing.status) in TERMINAL_STATUSES:
            return None
        if respect_settings and not reminder_settings.enabled:
            return None
        if reminders_sent >= reminder_settings.max_reminders:
            return None

        send_date = calculate_next_reminder_date(missing, reminders_sent)
        if send_date is None:
            return None

        reminder_type = self.determine_reminder_type(missing)

        return DocumentReminder(
            id=f"reminder-{missing.id}-{reminders_sent + 1}",
            missing_document_id=missing.id,
            document_type=DocumentType(missing.document_type),
            source=missing.source,
            reminder_type=reminder_type,
            urgency=self.determine_urgency(reminder_type),
            message=self.build_message(missing, reminder_type),
            actions=self.build_actions(missing, reminder_type),
            scheduled_for=datetime.combine(send_date, datetime.min.time()),
        )

    def generate_reminders(
        self,
        missing_documents: Iterable[MissingDocument],
        respect_settings: bool = True,
    ) -> ReminderGenerationResult:
        """
        Generate reminders for a batch of missing documents.

        Args:
            missing_documents: Records from the detector or the store
            respect_settings: Skip document types whose settings are disabled

        Returns:
            ReminderGenerationResult with per-type and per-urgency counts.
            Missing settings fall back to defaults and add a warning to errors.
        """
        missing_documents = list(missing_documents)
        reminders: List[DocumentReminder] = []
        errors: List[str] = []
        settings_cache: Dict[DocumentType, ReminderSettings] = {}
        by_type = {reminder_type: 0 for reminder_type in ReminderType}
        by_urgency = {urgency: 0 for urgency in ReminderUrgency}

        for missing in missing_documents:
            reminder_settings = self._resolve_settings(
                missing.document_type, settings_cache, errors
            )
            reminders_sent = self.store.get_reminder_count(missing.id)

            reminder = self.build_reminder(
                missing, reminder_settings, reminders_sent, respect_settings
            )
            if reminder is None:
                continue

            reminders.append(reminder)
            by_type[reminder.reminder_type] += 1
            by_urgency[reminder.urgency] += 1

            if self.tax_calendar is not None:
                self.tax_calendar.register(missing)

        logger.info(
            f"Generated {len(reminders)} reminders for {len(missing_documents)} pending documents"
        )

        return ReminderGenerationResult(
            reminders=reminders,
            total_pending=len(missing_documents),
            total_reminders=len(reminders),
            by_type=by_type,
            by_urgency=by_urgency,
            errors=errors,
        )


# =============================================================================
# GROUPING HELPERS
# =============================================================================

def group_reminders_by_urgency(
    reminders: Iterable[DocumentReminder],
) -> Dict[ReminderUrgency, List[DocumentReminder]]:
    groups: Dict[ReminderUrgency, List[DocumentReminder]] = {}
    for reminder in reminders:
        groups.setdefault(reminder.urgency, []).append(reminder)
    return groups


def group_reminders_by_type(
    reminders: Iterable[DocumentReminder],
) -> Dict[DocumentType, List[DocumentReminder]]:
    groups: Dict[DocumentType, List[DocumentReminder]] = {}
    for reminder in reminders:
        groups.setdefault(reminder.document_type, []).append(reminder)
    return groups
