"""
Scheduler API Routes

Internal endpoints for the system-automatic daily reminder check.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..dependencies import get_engine, verify_internal_key
from ..services import UploadReminderEngine, UploadReminderScheduler
from .upload_patterns import UploadEventRequest


router = APIRouter(prefix="/internal", tags=["scheduler"])


class ReminderCheckRequest(BaseModel):
    """Upload history for the daily check."""
    uploads: List[UploadEventRequest]
    today: Optional[date] = None
    deliver: bool = True


# =============================================================================
# SCHEDULER ENDPOINTS (SYSTEM-ONLY)
# =============================================================================

@router.post("/reminder-check", response_model=dict)
async def run_reminder_check(
    request: ReminderCheckRequest,
    engine: UploadReminderEngine = Depends(get_engine),
    _: bool = Depends(verify_internal_key),
):
    """
    Run the daily upload reminder check.

    System-automatic - no user confirmation required.
    Recomputes patterns, records missing documents and sends due reminders.
    """
    scheduler = UploadReminderScheduler(engine)

    result = scheduler.run_daily_check(
        [u.to_event() for u in request.uploads],
        today=request.today,
        deliver=request.deliver,
    )

    return result


# =============================================================================
# SCHEDULER STATUS ENDPOINTS (READ-ONLY)
# =============================================================================

@router.get("/analysis-runs/latest", response_model=dict)
async def get_latest_analysis_run(
    engine: UploadReminderEngine = Depends(get_engine),
    _: bool = Depends(verify_internal_key),
):
    """Most recent analysis run for monitoring."""
    run = engine.store.get_latest_analysis_run()
    if run is None:
        raise HTTPException(status_code=404, detail="No analysis runs recorded")
    return run
