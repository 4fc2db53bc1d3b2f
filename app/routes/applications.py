"""Application Tracking Routes"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from app.database import get_db
from app.models.application import Application, DEFAULT_STATUS
from app.middleware.auth import get_user_id
from app.services import application_store
from app.services.reminder_policy import to_naive_utc, utcnow
from app.services.reminder_scheduler import ReminderScheduler, get_reminder_scheduler
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger()


class ApplicationCreate(BaseModel):
    title: str
    type: Optional[str] = None
    status: Optional[str] = None
    deadline: Optional[datetime] = None
    notes: Optional[str] = None


class ApplicationUpdate(BaseModel):
    title: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    deadline: Optional[datetime] = None
    notes: Optional[str] = None


async def _sync_reminders(
    db: AsyncSession,
    app: Application,
    reminders: Optional[ReminderScheduler],
) -> None:
    """Reschedule after create/update; cancel when the deadline was cleared."""
    if reminders is None:
        return
    if app.deadline is None:
        reminders.cancel_application(app.id)
        return
    user = await application_store.find_user_by_id(db, app.user_id)
    if user:
        reminders.schedule_application(app, user.email)


@router.get("/")
async def list_applications(
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    apps = await application_store.list_user_applications(db, user_id)
    return [app.to_dict() for app in apps]


@router.post("/", status_code=201)
async def create_application(
    data: ApplicationCreate,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reminders: Optional[ReminderScheduler] = Depends(get_reminder_scheduler),
):
    app = Application(
        user_id=user_id,
        title=data.title,
        type=data.type,
        status=data.status or DEFAULT_STATUS,
        deadline=to_naive_utc(data.deadline),
        notes=data.notes,
    )
    db.add(app)
    await db.commit()
    await db.refresh(app)

    await _sync_reminders(db, app, reminders)
    return app.to_dict()


@router.put("/{app_id}")
async def update_application(
    app_id: int,
    data: ApplicationUpdate,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reminders: Optional[ReminderScheduler] = Depends(get_reminder_scheduler),
):
    app = await application_store.find_owned_application(db, app_id, user_id)
    if not app:
        raise HTTPException(status_code=404, detail="Application not found")

    update_data = data.model_dump(exclude_unset=True)
    # NOT NULL columns: an explicit null leaves the stored value alone
    for field in ("title", "status"):
        if update_data.get(field) is None:
            update_data.pop(field, None)
    if "deadline" in update_data:
        update_data["deadline"] = to_naive_utc(update_data["deadline"])

    for field, value in update_data.items():
        setattr(app, field, value)

    app.updated_at = utcnow()
    await db.commit()
    await db.refresh(app)

    await _sync_reminders(db, app, reminders)
    return app.to_dict()


@router.delete("/{app_id}")
async def delete_application(
    app_id: int,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reminders: Optional[ReminderScheduler] = Depends(get_reminder_scheduler),
):
    app = await application_store.find_owned_application(db, app_id, user_id)
    if not app:
        raise HTTPException(status_code=404, detail="Application not found")

    await db.delete(app)
    await db.commit()

    if reminders is not None:
        reminders.cancel_application(app_id)
    return {"message": "Application deleted"}
