"""
Store queries used by the reminder scheduler and the CRUD routes.

Usage:
    apps = await application_store.find_applications_with_future_deadline(db, now)
    user = await application_store.find_user_by_id(db, app.user_id)
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.application import Application
from app.models.user import User


async def find_applications_with_future_deadline(db: AsyncSession, now: datetime) -> List[Application]:
    result = await db.execute(
        select(Application)
        .where(Application.deadline.is_not(None), Application.deadline > now)
        .order_by(Application.deadline.asc())
    )
    return list(result.scalars().all())


async def find_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)


async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def find_application_by_id(db: AsyncSession, application_id: int) -> Optional[Application]:
    return await db.get(Application, application_id)


async def find_owned_application(db: AsyncSession, application_id: int, user_id: int) -> Optional[Application]:
    result = await db.execute(
        select(Application).where(Application.id == application_id, Application.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def list_user_applications(db: AsyncSession, user_id: int) -> List[Application]:
    # Soonest deadline first, undated applications last
    result = await db.execute(
        select(Application)
        .where(Application.user_id == user_id)
        .order_by(Application.deadline.is_(None), Application.deadline.asc(), Application.id.asc())
    )
    return list(result.scalars().all())
