"""
Tests for reminder delivery and the per-key writer locks.
"""
import threading
import pytest
from datetime import datetime
from unittest.mock import MagicMock, call

from upload_reminders.exceptions import NotificationDeliveryError
from upload_reminders.models import (
    DeliveryChannel,
    DocumentReminder,
    DocumentType,
    MissingDocumentStatus,
    ReminderMessage,
    ReminderSettings,
    ReminderType,
    ReminderUrgency,
)
from upload_reminders.services import KeyedLock
from upload_reminders.services.reminders import InMemoryNotifier, Notifier, ReminderDispatcher


def make_reminder(missing_id="missing-a", scheduled_for=datetime(2026, 7, 18), number=1):
    return DocumentReminder(
        id=f"reminder-{missing_id}-{number}",
        missing_document_id=missing_id,
        document_type=DocumentType.BANK_STATEMENT,
        source="ANZ",
        reminder_type=ReminderType.OVERDUE,
        urgency=ReminderUrgency.HIGH,
        message=ReminderMessage(title="Bank Statement Overdue", body="Your ANZ bank statement..."),
        actions=[],
        scheduled_for=scheduled_for,
    )


class FailingEmailNotifier(Notifier):
    def __init__(self):
        self.delivered = []

    def deliver(self, reminder, channel):
        if channel == DeliveryChannel.EMAIL:
            raise NotificationDeliveryError("SMTP unavailable")
        self.delivered.append((reminder.id, channel))


@pytest.fixture
def store():
    mock_store = MagicMock()
    mock_store.load_reminder_settings.return_value = ReminderSettings(
        document_type=DocumentType.BANK_STATEMENT,
        push_notifications=True,
        email_notifications=False,
    )
    return mock_store


NOW = datetime(2026, 7, 25, 9, 0)


# =============================================================================
# TEST: DISPATCHER
# =============================================================================

class TestReminderDispatcher:

    def test_channels_follow_settings(self, store):
        dispatcher = ReminderDispatcher(store, InMemoryNotifier())
        assert dispatcher.resolve_channels(make_reminder()) == [DeliveryChannel.APP, DeliveryChannel.PUSH]

    def test_channels_default_when_unconfigured(self, store):
        store.load_reminder_settings.return_value = None
        dispatcher = ReminderDispatcher(store, InMemoryNotifier())
        assert dispatcher.resolve_channels(make_reminder()) == [DeliveryChannel.APP, DeliveryChannel.PUSH]

    def test_only_due_reminders_sent(self, store):
        notifier = InMemoryNotifier()
        dispatcher = ReminderDispatcher(store, notifier)

        result = dispatcher.process_due_reminders(
            [make_reminder("missing-a"), make_reminder("missing-b", scheduled_for=datetime(2026, 8, 1))],
            now=NOW,
        )

        assert result.processed == 1
        assert result.sent == 2
        assert result.failed == 0
        assert result.by_channel[DeliveryChannel.APP] == 1
        assert result.by_channel[DeliveryChannel.PUSH] == 1
        assert result.by_channel[DeliveryChannel.EMAIL] == 0
        assert len(notifier.for_missing_document("missing-a")) == 2
        assert notifier.for_missing_document("missing-b") == []

    def test_each_send_recorded(self, store):
        dispatcher = ReminderDispatcher(store, InMemoryNotifier())

        dispatcher.process_due_reminders([make_reminder()], now=NOW)

        store.record_reminder_sent.assert_has_calls([
            call("missing-a", reminder_id="reminder-missing-a-1", reminder_type="after_due",
                 channel=DeliveryChannel.APP),
            call("missing-a", reminder_id="reminder-missing-a-1", reminder_type="after_due",
                 channel=DeliveryChannel.PUSH),
        ])
        store.update_missing_document_status.assert_called_with(
            "missing-a", MissingDocumentStatus.REMINDED
        )

    def test_delivery_failure_counted_and_batch_continues(self, store):
        notifier = FailingEmailNotifier()
        dispatcher = ReminderDispatcher(store, notifier)

        result = dispatcher.process_due_reminders(
            [make_reminder("missing-a"), make_reminder("missing-b")],
            channels=[DeliveryChannel.APP, DeliveryChannel.EMAIL],
            now=NOW,
        )

        assert result.processed == 2
        assert result.sent == 2
        assert result.failed == 2
        assert notifier.delivered == [
            ("reminder-missing-a-1", DeliveryChannel.APP),
            ("reminder-missing-b-1", DeliveryChannel.APP),
        ]
        assert store.record_reminder_sent.call_count == 2

    def test_store_failure_propagates(self, store):
        store.record_reminder_sent.side_effect = RuntimeError("database is locked")
        dispatcher = ReminderDispatcher(store, InMemoryNotifier())

        with pytest.raises(RuntimeError):
            dispatcher.process_due_reminders([make_reminder()], now=NOW)

    def test_in_memory_notification_payload(self, store):
        notifier = InMemoryNotifier()
        ReminderDispatcher(store, notifier).process_due_reminders(
            [make_reminder()], channels=[DeliveryChannel.APP], now=NOW
        )

        notification = notifier.notifications[0]
        assert notification["channel"] == "app"
        assert notification["title"] == "Bank Statement Overdue"
        assert notification["urgency"] == "high"
        assert notification["read"] is False


# =============================================================================
# TEST: KEYED LOCK
# =============================================================================

class TestKeyedLock:

    def test_one_lock_per_key(self):
        locks = KeyedLock()
        with locks.hold("missing-a"):
            pass
        with locks.hold("missing-a"):
            pass
        with locks.hold(("pattern", "bank_statement:ANZ")):
            pass
        assert len(locks) == 2

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        entered = threading.Event()

        def other():
            with locks.hold("missing-b"):
                entered.set()

        with locks.hold("missing-a"):
            worker = threading.Thread(target=other)
            worker.start()
            assert entered.wait(timeout=2)
            worker.join()

    def test_same_key_serializes_writers(self):
        locks = KeyedLock()
        counter = {"value": 0}

        def increment():
            for _ in range(200):
                with locks.hold("missing-a"):
                    current = counter["value"]
                    counter["value"] = current + 1

        workers = [threading.Thread(target=increment) for _ in range(4)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        assert counter["value"] == 800
