"""
Tax Calendar Bridge

Converts sufficiently confident missing documents into CUSTOM tax-calendar
deadlines. Low and uncertain patterns never reach the user's calendar.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from ...models.domain import (
    DeadlineType, DocumentType, MissingDocument, PatternConfidence, TaxDeadline,
    get_document_type_label,
)


logger = logging.getLogger(__name__)

CALENDAR_CONFIDENCES = {PatternConfidence.HIGH, PatternConfidence.MEDIUM}


def create_tax_deadline_from_missing(missing: MissingDocument) -> Optional[TaxDeadline]:
    """CUSTOM deadline for a high/medium confidence missing document, else None."""
    if PatternConfidence(missing.confidence) not in CALENDAR_CONFIDENCES:
        return None

    label = get_document_type_label(missing.document_type)

    return TaxDeadline(
        id=f"deadline-{missing.id}",
        type=DeadlineType.CUSTOM,
        title=f"Upload {label}",
        description=(
            f"Expected {label.lower()} from {missing.source} based on historical pattern."
        ),
        due_date=missing.expected_date,
        metadata={
            "is_upload_reminder": True,
            "missing_document_id": missing.id,
            "source": missing.source,
            "document_type": DocumentType(missing.document_type).value,
            "pattern_id": missing.pattern_id,
        },
    )


def is_upload_reminder_deadline(deadline: Any) -> bool:
    """True for deadlines created by this bridge."""
    metadata: Dict[str, Any] = getattr(deadline, "metadata", None)
    if metadata is None and isinstance(deadline, dict):
        metadata = deadline.get("metadata")
    return bool(metadata) and metadata.get("is_upload_reminder") is True


class TaxCalendarBridge:
    """
    Registers upload deadlines with a tax calendar collaborator.

    The calendar only needs an add_deadline(TaxDeadline) method.
    """

    def __init__(self, calendar):
        self.calendar = calendar

    def register(self, missing: MissingDocument) -> Optional[TaxDeadline]:
        deadline = create_tax_deadline_from_missing(missing)
        if deadline is None:
            return None
        self.calendar.add_deadline(deadline)
        logger.info(f"Registered tax deadline {deadline.id} for {missing.source}")
        return deadline

    def sync(self, missing_documents: Iterable[MissingDocument]) -> List[TaxDeadline]:
        """Register deadlines for every eligible missing document."""
        registered = []
        for missing in missing_documents:
            deadline = self.register(missing)
            if deadline is not None:
                registered.append(deadline)
        return registered
