"""
Scheduler API Router
Manual trigger for one reminder evaluation pass
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status

from actions.reminder_scheduler import ReminderScheduler
from api.deps import get_scheduler


router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.post("/tick")
async def trigger_tick(scheduler: Optional[ReminderScheduler] = Depends(get_scheduler)):
    """
    Run one evaluation pass now

    Uses the same engine and ledger as the background loop; a trigger that
    arrives while a pass is running is reported as skipped.
    """
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminder scheduler is not configured"
        )
    report = await scheduler.run_once()
    return report.to_dict()
