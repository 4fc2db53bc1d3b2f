"""User registration, login and profile routes"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
from typing import Optional

from app.config import get_settings
from app.database import get_db
from app.models.user import User
from app.middleware.auth import create_access_token, get_current_user
from app.services import application_store
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger()

# Rate limiter for authentication endpoints
from slowapi import Limiter
from slowapi.util import get_remote_address
limiter = Limiter(key_func=get_remote_address, enabled=get_settings().rate_limit_enabled)


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/register", status_code=201)
@limiter.limit("10/hour")
async def register_user(
    request: Request,
    user_data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """Register a new user with an email and password"""
    if not user_data.email or not user_data.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    email = user_data.email.strip().lower()
    if await application_store.find_user_by_email(db, email):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User.create_user(email=email, password=user_data.password, name=user_data.name)
    db.add(user)
    await db.commit()
    logger.info(f"[Auth] Registered user {user.id}")

    return {"message": "User registered successfully"}


@router.post("/login")
@limiter.limit("20/minute")
async def login_user(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange email and password for a bearer token.

    Returns:
        - token: send it back in the Authorization header
        - user: id, name, email
    """
    user = await application_store.find_user_by_email(db, credentials.email.strip().lower())
    if not user:
        raise HTTPException(status_code=404, detail="Invalid email or password")

    if not User.verify_password(credentials.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return {
        "message": "Login successful",
        "token": create_access_token(user.id),
        "user": {"id": user.id, "name": user.name, "email": user.email},
    }


@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    """Get current authenticated user info"""
    return current_user.to_dict()
