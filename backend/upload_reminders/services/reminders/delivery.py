"""
Reminder Delivery

Hands due reminders to a notifier, one call per channel, and records each
successful send with the store. Only counts are tracked here; rendering
and transport belong to the notifier.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ...exceptions import NotificationDeliveryError
from ...models.domain import (
    DeliveryChannel, DeliveryResult, DocumentReminder, MissingDocumentStatus,
    ReminderType, utcnow,
)
from ..locks import KeyedLock
from .generator import default_reminder_settings


logger = logging.getLogger(__name__)

# Reminder type -> history category stored with each send
HISTORY_TYPES = {
    ReminderType.UPCOMING: "before_due",
    ReminderType.OVERDUE: "after_due",
    ReminderType.FOLLOW_UP: "follow_up",
    ReminderType.FINAL_NOTICE: "follow_up",
}


# =============================================================================
# NOTIFIERS
# =============================================================================

class Notifier:
    """Delivery collaborator. Raise NotificationDeliveryError on failure."""

    def deliver(self, reminder: DocumentReminder, channel: DeliveryChannel) -> None:
        raise NotImplementedError


class InMemoryNotifier(Notifier):
    """In-memory notification store (replace with push/email integration in production)."""

    def __init__(self):
        self.notifications: List[Dict] = []

    def deliver(self, reminder: DocumentReminder, channel: DeliveryChannel) -> None:
        self.notifications.append({
            "reminder_id": reminder.id,
            "missing_document_id": reminder.missing_document_id,
            "channel": DeliveryChannel(channel).value,
            "title": reminder.message.title,
            "body": reminder.message.body,
            "urgency": reminder.urgency.value,
            "timestamp": utcnow().isoformat(),
            "read": False,
        })

    def for_missing_document(self, missing_document_id: str) -> List[Dict]:
        return [n for n in self.notifications if n["missing_document_id"] == missing_document_id]


# =============================================================================
# DISPATCHER
# =============================================================================

class ReminderDispatcher:
    """
    Processes due reminders.

    Notifier failures are counted and the batch continues. Store failures
    propagate to the caller.
    """

    def __init__(self, store, notifier: Notifier, locks: Optional[KeyedLock] = None):
        self.store = store
        self.notifier = notifier
        self.locks = locks or KeyedLock()

    def resolve_channels(self, reminder: DocumentReminder) -> List[DeliveryChannel]:
        """In-app always; push and email follow the document type's settings."""
        settings = self.store.load_reminder_settings(reminder.document_type)
        if settings is None:
            settings = default_reminder_settings(reminder.document_type)

        channels = [DeliveryChannel.APP]
        if settings.push_notifications:
            channels.append(DeliveryChannel.PUSH)
        if settings.email_notifications:
            channels.append(DeliveryChannel.EMAIL)
        return channels

    def send_reminder(self, reminder: DocumentReminder, channel: DeliveryChannel) -> bool:
        """Deliver on one channel and record it. Returns False on delivery failure."""
        try:
            self.notifier.deliver(reminder, channel)
        except NotificationDeliveryError as e:
            logger.error(f"Failed to send reminder {reminder.id} via {channel.value}: {e}")
            return False

        with self.locks.hold(reminder.missing_document_id):
            self.store.record_reminder_sent(
                reminder.missing_document_id,
                reminder_id=reminder.id,
                reminder_type=HISTORY_TYPES[reminder.reminder_type],
                channel=channel,
            )
            self.store.update_missing_document_status(
                reminder.missing_document_id, MissingDocumentStatus.REMINDED
            )

        logger.info(
            f"Sent {reminder.reminder_type.value} reminder via {channel.value}: "
            f"{reminder.message.title} ({reminder.source})"
        )
        return True

    def process_due_reminders(
        self,
        reminders: Iterable[DocumentReminder],
        channels: Optional[List[DeliveryChannel]] = None,
        now: Optional[datetime] = None,
    ) -> DeliveryResult:
        """
        Send every reminder whose scheduled_for has passed.

        Args:
            reminders: Generated reminders
            channels: Fixed channel list; by default resolved per reminder from settings
            now: Comparison time for scheduled_for (naive UTC)

        Returns:
            DeliveryResult with processed/sent/failed counts
        """
        now = now or utcnow()
        result = DeliveryResult()

        for reminder in reminders:
            if reminder.scheduled_for > now:
                continue

            result.processed += 1
            for channel in channels or self.resolve_channels(reminder):
                channel = DeliveryChannel(channel)
                if self.send_reminder(reminder, channel):
                    result.sent += 1
                    result.by_channel[channel] += 1
                else:
                    result.failed += 1

        logger.info(
            f"Processed {result.processed} due reminders: {result.sent} sent, {result.failed} failed"
        )
        return result
