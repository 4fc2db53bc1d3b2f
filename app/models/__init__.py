# Database models package
from app.models.user import User
from app.models.application import Application

__all__ = [
    "User",
    "Application",
]
