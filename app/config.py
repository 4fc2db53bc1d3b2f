from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
import os

class Settings(BaseSettings):
    # Auth
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_days: int = 7

    # Database - Railway provides DATABASE_URL, fallback to SQLite for local
    database_url: Optional[str] = None

    # Mail (SMTP). Empty mail_host means reminders are logged, not sent
    mail_host: str = ""
    mail_port: int = 587
    mail_user: str = ""
    mail_password: str = ""
    mail_from: str = ""
    mail_use_tls: bool = True

    # Reminders
    reminders_enabled: bool = True
    reminder_rescan_hours: int = 0  # 0 disables the periodic rescan

    rate_limit_enabled: bool = True

    # App Settings
    app_name: str = "Deadline Tracker"
    app_version: str = "1.0.0"
    debug: bool = False
    allowed_origins: str = "http://localhost:5173,http://localhost:3000"

    # API Settings
    backend_host: str = "0.0.0.0"
    backend_port: int = int(os.getenv("PORT", "5000"))

    class Config:
        env_file = ".env"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Auto-detect database URL
        if self.database_url is None:
            self.database_url = os.getenv("DATABASE_URL") or "sqlite+aiosqlite:///./deadline_tracker.db"
        self.database_url = async_database_url(self.database_url)

    @property
    def mail_sender(self) -> str:
        return self.mail_from or self.mail_user


def async_database_url(url: str) -> str:
    """SQLAlchemy async needs postgresql+asyncpg://, Railway hands out postgres:// or postgresql://"""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url

@lru_cache()
def get_settings() -> Settings:
    return Settings()
