"""Pending reminder inspection (read only)"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.database import get_db
from app.middleware.auth import get_user_id
from app.services import application_store
from app.services.reminder_scheduler import ReminderScheduler, get_reminder_scheduler

router = APIRouter()


@router.get("/pending")
async def list_pending_reminders(
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reminders: Optional[ReminderScheduler] = Depends(get_reminder_scheduler),
):
    if reminders is None:
        return {"reminders": []}
    apps = await application_store.list_user_applications(db, user_id)
    timers = reminders.pending({app.id for app in apps})
    return {"reminders": [t.to_dict() for t in timers]}
