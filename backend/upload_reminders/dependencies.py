"""
Upload Reminder Engine - API Dependencies
Engine wiring per request; notifier and writer locks are process-wide
"""
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .config import get_settings
from .database import get_db
from .services import KeyedLock, UploadReminderEngine, UploadReminderRepository
from .services.reminders import InMemoryNotifier

notifier = InMemoryNotifier()
locks = KeyedLock()


def get_repository(db: Session = Depends(get_db)) -> UploadReminderRepository:
    return UploadReminderRepository(db)


def get_engine(
    repository: UploadReminderRepository = Depends(get_repository),
) -> UploadReminderEngine:
    return UploadReminderEngine(repository, notifier=notifier, locks=locks)


async def verify_internal_key(x_internal_key: str = Header(...)):
    """Verify internal API key for scheduler endpoints."""
    if x_internal_key != get_settings().internal_api_key:
        raise HTTPException(status_code=403, detail="Invalid internal API key")
    return True
