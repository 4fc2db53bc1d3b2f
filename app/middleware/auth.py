from fastapi import Header, HTTPException, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt

from app.config import get_settings
from app.database import get_db
from app.models.user import User
from app.utils.logger import logger


def create_access_token(user_id: int) -> str:
    """Issue a signed JWT binding the bearer to a user id"""
    settings = get_settings()
    payload = {
        "id": user_id,
        "exp": datetime.now(timezone.utc) + timedelta(days=settings.jwt_expire_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> int:
    """Return the user id in a token. Raises jwt.InvalidTokenError on bad/expired tokens."""
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        options={"verify_exp": True},
    )
    user_id = payload.get("id")
    if not isinstance(user_id, int):
        raise jwt.InvalidTokenError("missing user id")
    return user_id


async def get_user_id(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> int:
    """
    Dependency returning the verified user id from the Authorization header.

    Accepts the raw token or "Bearer <token>".

    Usage:
        @router.get("/endpoint")
        async def endpoint(user_id: int = Depends(get_user_id)):
            ...
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Access denied")

    token = authorization.strip()
    parts = token.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        token = parts[1]

    try:
        user_id = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=403, detail="Invalid token")
    except jwt.InvalidTokenError as e:
        logger.info(f"[Auth] Rejected token: {e}")
        raise HTTPException(status_code=403, detail="Invalid token")

    request.state.user_id = user_id
    return user_id


async def get_current_user(
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Dependency loading the authenticated user record"""
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
