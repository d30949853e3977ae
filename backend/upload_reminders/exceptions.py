"""
Upload Reminder Engine - Exceptions
"""


class UploadReminderError(Exception):
    """Base class for upload reminder engine failures."""
    pass


class PatternNotFoundError(UploadReminderError):
    """Raised when a pattern id does not exist in the store."""

    def __init__(self, pattern_id: str):
        self.pattern_id = pattern_id
        super().__init__(f"Pattern not found: {pattern_id}")


class MissingDocumentNotFoundError(UploadReminderError):
    """Raised when a missing-document id does not exist in the store."""

    def __init__(self, missing_document_id: str):
        self.missing_document_id = missing_document_id
        super().__init__(f"Missing document not found: {missing_document_id}")


class InvalidStatusTransitionError(UploadReminderError):
    """Raised when a missing document is moved out of a terminal status."""

    def __init__(self, missing_document_id: str, current: str, requested: str):
        self.missing_document_id = missing_document_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move missing document {missing_document_id} from {current} to {requested}"
        )


class NotificationDeliveryError(UploadReminderError):
    """Raised by a notifier when a channel fails to deliver a reminder."""
    pass
