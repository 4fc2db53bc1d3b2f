"""
Shared test fixtures.

Points the app at a throwaway SQLite database and turns off rate limiting and
file logging before any production module is imported, since app.database
builds its engine at import time.
"""
import os
import tempfile
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

_TMP_DIR = tempfile.mkdtemp(prefix="deadline-tracker-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_TO_FILE"] = "0"
os.environ["JWT_SECRET"] = "test-secret-for-the-deadline-tracker-suite"
os.environ["MAIL_HOST"] = ""

import pytest

from app.services.notifier import Notifier
from app.services.reminder_scheduler import ReminderScheduler
from app.utils import metrics

NOW = datetime(2024, 1, 8, 0, 0, 0)


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@asynccontextmanager
async def fake_session():
    yield MagicMock()


def make_application(app_id=1, user_id=7, title="Acme - Software Engineer", deadline=None):
    return SimpleNamespace(id=app_id, user_id=user_id, title=title, deadline=deadline)


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return MagicMock()


@pytest.fixture
def notifier(transport):
    return Notifier(transport, sender="reminders@example.com")


@pytest.fixture
def scheduler(notifier, clock):
    return ReminderScheduler(notifier, session_factory=fake_session, clock=clock, autostart=False)
