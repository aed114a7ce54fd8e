"""
Scheduler API Routes

Internal endpoints for system-automatic tasks.
Called by the deployment's cron; never by users.
"""
import os
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Header
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.disputes import DeadlineScheduler, ReminderMessageGenerator


router = APIRouter(prefix="/internal", tags=["scheduler"])


# =============================================================================
# INTERNAL API KEY VALIDATION
# =============================================================================

INTERNAL_API_KEY = os.getenv("RISEORA_INTERNAL_KEY", "scheduler-internal-key-change-in-production")


async def verify_internal_key(x_internal_key: str = Header(...)):
    """Verify internal API key for scheduler endpoints."""
    if x_internal_key != INTERNAL_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid internal API key")
    return True


def get_reminder_generator() -> Optional[ReminderMessageGenerator]:
    """Reminder wording service. None means fixed fallback wording."""
    return None


# =============================================================================
# SCHEDULER ENDPOINTS (SYSTEM-ONLY)
# =============================================================================

@router.post("/reminder-check", response_model=dict)
async def run_reminder_check(
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
    message_generator: Optional[ReminderMessageGenerator] = Depends(get_reminder_generator),
):
    """
    Run the deadline reminder scan.

    System-automatic - no user confirmation required.
    Creates DEADLINE_APPROACHING and NO_RESPONSE notifications.
    """
    scheduler = DeadlineScheduler(db, message_generator=message_generator)

    result = scheduler.run_reminder_check()

    return {"task": "reminder_check", **result}
