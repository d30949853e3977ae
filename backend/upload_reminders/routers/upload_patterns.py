"""
Upload Reminder Engine - Patterns & Reminders API Router

User-facing endpoints: detected upload patterns, missing documents,
reminder settings, generated reminders and expected documents.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from ..dependencies import get_engine, get_repository
from ..exceptions import (
    InvalidStatusTransitionError, MissingDocumentNotFoundError, PatternNotFoundError,
)
from ..models.domain import (
    DocumentType, MissingDocumentStatus, ReminderSettings, UploadEvent,
)
from ..services import UploadReminderEngine, UploadReminderRepository


router = APIRouter(tags=["upload-reminders"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class UploadEventRequest(BaseModel):
    """One historical upload."""
    document_type: DocumentType
    source: str = Field(..., min_length=1)
    upload_date: Optional[date] = None
    id: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    tax_year: Optional[str] = None

    def to_event(self) -> UploadEvent:
        return UploadEvent(**self.model_dump())


class AnalysisRequest(BaseModel):
    """Request model for running pattern analysis."""
    uploads: List[UploadEventRequest]
    dry_run: bool = False


class StatusUpdateRequest(BaseModel):
    """Request model for moving a missing document to a new status."""
    status: MissingDocumentStatus


class ReminderSettingsRequest(BaseModel):
    """Partial reminder settings update. Omitted fields keep their value."""
    enabled: Optional[bool] = None
    reminder_days_before: Optional[int] = Field(None, ge=0)
    reminder_days_after: Optional[int] = Field(None, ge=0)
    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    max_reminders: Optional[int] = Field(None, ge=0)


# =============================================================================
# PATTERNS
# =============================================================================

@router.get("/upload-patterns", response_model=dict)
async def list_patterns(
    document_type: Optional[DocumentType] = None,
    source: Optional[str] = None,
    repository: UploadReminderRepository = Depends(get_repository),
):
    """List detected patterns, optionally filtered by document type or source."""
    if document_type is not None:
        patterns = repository.get_patterns_by_document_type(document_type)
    elif source is not None:
        patterns = repository.get_patterns_by_source(source)
    else:
        patterns = repository.load_patterns()

    return {"patterns": jsonable_encoder(patterns), "total": len(patterns)}


@router.post("/upload-patterns", response_model=dict)
async def analyze_patterns(
    request: AnalysisRequest,
    engine: UploadReminderEngine = Depends(get_engine),
):
    """
    Recompute patterns from upload history.

    With dry_run the patterns are returned without being stored.
    """
    uploads = [u.to_event() for u in request.uploads]
    result = engine.run_analysis(uploads, persist=not request.dry_run)
    return jsonable_encoder(result)


@router.get("/upload-patterns/{pattern_id}", response_model=dict)
async def get_pattern(
    pattern_id: str,
    repository: UploadReminderRepository = Depends(get_repository),
):
    pattern = repository.get_pattern(pattern_id)
    if pattern is None:
        raise HTTPException(status_code=404, detail=f"Pattern not found: {pattern_id}")
    return jsonable_encoder(pattern)


@router.delete("/upload-patterns/{pattern_id}", response_model=dict)
async def delete_pattern(
    pattern_id: str,
    repository: UploadReminderRepository = Depends(get_repository),
):
    """Delete a pattern with its change history and missing documents."""
    try:
        repository.delete_pattern(pattern_id)
    except PatternNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    repository.commit()
    return {"deleted": pattern_id}


# =============================================================================
# MISSING DOCUMENTS
# =============================================================================

@router.get("/missing-documents", response_model=dict)
async def list_missing_documents(
    status: Optional[MissingDocumentStatus] = None,
    today: Optional[date] = None,
    engine: UploadReminderEngine = Depends(get_engine),
):
    """Pending and reminded documents by default; filter with ?status=. Overdue state is as of today."""
    missing = engine.list_missing_documents(status=status, today=today)
    return {"missing_documents": jsonable_encoder(missing), "total": len(missing)}


@router.patch("/missing-documents/{missing_document_id}", response_model=dict)
async def update_missing_document(
    missing_document_id: str,
    request: StatusUpdateRequest,
    engine: UploadReminderEngine = Depends(get_engine),
):
    """Mark a missing document uploaded or dismissed. Terminal statuses cannot be left."""
    try:
        missing = engine.update_missing_document_status(missing_document_id, request.status)
    except MissingDocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return jsonable_encoder(missing)


@router.get("/missing-documents/{missing_document_id}/history", response_model=dict)
async def get_missing_document_history(
    missing_document_id: str,
    repository: UploadReminderRepository = Depends(get_repository),
):
    """Reminders delivered for one missing document, newest first."""
    if repository.get_missing_document(missing_document_id) is None:
        raise HTTPException(
            status_code=404, detail=f"Missing document not found: {missing_document_id}"
        )
    history = repository.get_reminders_for_missing_document(missing_document_id)
    return {
        "missing_document_id": missing_document_id,
        "reminders_sent": repository.get_reminder_count(missing_document_id),
        "history": history,
    }


# =============================================================================
# REMINDER SETTINGS
# =============================================================================

@router.get("/reminder-settings", response_model=dict)
async def list_reminder_settings(
    repository: UploadReminderRepository = Depends(get_repository),
):
    settings = repository.get_all_reminder_settings()
    return {"settings": jsonable_encoder(settings)}


@router.get("/reminder-settings/{document_type}", response_model=dict)
async def get_reminder_settings(
    document_type: DocumentType,
    repository: UploadReminderRepository = Depends(get_repository),
):
    settings = repository.load_reminder_settings(document_type)
    if settings is None:
        settings = ReminderSettings(document_type=document_type)
    return jsonable_encoder(settings)


@router.put("/reminder-settings/{document_type}", response_model=dict)
async def update_reminder_settings(
    document_type: DocumentType,
    request: ReminderSettingsRequest,
    repository: UploadReminderRepository = Depends(get_repository),
):
    settings = repository.update_reminder_settings(
        document_type, **request.model_dump(exclude_none=True)
    )
    repository.commit()
    return jsonable_encoder(settings)


# =============================================================================
# REMINDERS & EXPECTED DOCUMENTS
# =============================================================================

@router.get("/reminders", response_model=dict)
async def list_reminders(
    respect_settings: bool = True,
    today: Optional[date] = None,
    engine: UploadReminderEngine = Depends(get_engine),
):
    """Reminders currently due for pending/reminded documents. Nothing is sent."""
    pending = engine.list_missing_documents(today=today)
    result = engine.generate_reminders(pending, respect_settings=respect_settings)
    return jsonable_encoder(result)


@router.get("/expected-documents", response_model=dict)
async def list_expected_documents(
    days_ahead: int = 30,
    engine: UploadReminderEngine = Depends(get_engine),
):
    """Documents expected within the next days_ahead days."""
    expected = engine.get_expected_documents(days_ahead=days_ahead)
    return {"expected_documents": jsonable_encoder(expected), "total": len(expected)}
