"""
In-memory registry of pending reminder timers.

Backed by one APScheduler AsyncIOScheduler: every timer is a one-shot "date"
job that hands the timer to the fire callback at its fire-time. Job ids are
derived from (application_id, offset_index) so a slot holds at most one live
timer; scheduling into an occupied slot replaces it.

Usage:
    registry = TimerRegistry(on_fire=deliver)
    registry.start()                       # needs a running event loop
    registry.schedule(timer)               # sync, cheap, safe on the request path
    registry.cancel_application(app_id)    # on update/delete
    await registry.fire_due(now)           # flush everything due (tests, manual runs)
    await registry.shutdown()
"""
import asyncio
import zoneinfo
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Tuple

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.services.reminder_policy import utcnow
from app.utils.logger import logger

TimerKey = Tuple[int, int]


@dataclass(frozen=True)
class PendingTimer:
    application_id: int
    offset_index: int
    fire_at: datetime
    deadline: datetime
    recipient: str
    subject: str
    body: str

    @property
    def key(self) -> TimerKey:
        return (self.application_id, self.offset_index)

    def to_dict(self):
        return {
            "applicationId": self.application_id,
            "offsetIndex": self.offset_index,
            "fireAt": self.fire_at.isoformat(),
            "deadline": self.deadline.isoformat(),
            "subject": self.subject,
        }


def _job_id(key: TimerKey) -> str:
    return f"{key[0]}:{key[1]}"


class TimerRegistry:
    def __init__(
        self,
        on_fire: Callable[[PendingTimer], Awaitable[None]],
        clock: Callable[[], datetime] = utcnow,
        autostart: bool = True,
    ):
        self._on_fire = on_fire
        self._clock = clock
        self._autostart = autostart
        # Naive datetimes everywhere are UTC; a late job still runs and is re-checked on fire
        self._scheduler = AsyncIOScheduler(
            timezone=zoneinfo.ZoneInfo("UTC"),
            job_defaults={"misfire_grace_time": None, "coalesce": True},
        )

    def __len__(self) -> int:
        return len(self._scheduler.get_jobs())

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> bool:
        """Start the underlying scheduler. Returns False when no event loop is running."""
        if self._scheduler.running:
            return True
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Jobs stay queued in the scheduler until start() or fire_due() picks them up
            logger.warning("timer.no_event_loop", extra={"scheduled": len(self)})
            return False
        self._scheduler.start()
        return True

    def schedule(self, timer: PendingTimer) -> bool:
        """Register a one-shot timer. Returns False if its fire-time already passed."""
        if timer.fire_at <= self._clock():
            logger.debug(
                "timer.dropped_past_due",
                extra={"application_id": timer.application_id, "offset_index": timer.offset_index},
            )
            return False

        if self._remove(timer.key):
            logger.debug(
                "timer.superseded",
                extra={"application_id": timer.application_id, "offset_index": timer.offset_index},
            )

        self._scheduler.add_job(
            self._fire,
            "date",
            run_date=timer.fire_at,
            args=[timer],
            id=_job_id(timer.key),
            name=f"reminder-{timer.application_id}-{timer.offset_index}",
            replace_existing=True,
        )
        if self._autostart:
            self.start()
        return True

    def cancel_application(self, application_id: int) -> int:
        """Cancel every live timer belonging to one application."""
        timers = self.pending(application_id)
        for timer in timers:
            self._remove(timer.key)
        return len(timers)

    def pending(self, application_id: Optional[int] = None) -> List[PendingTimer]:
        timers = [
            job.args[0] for job in self._scheduler.get_jobs()
            if application_id is None or job.args[0].application_id == application_id
        ]
        return sorted(timers, key=lambda t: t.key)

    async def fire_due(self, now: Optional[datetime] = None) -> int:
        """Fire every pending timer due at or before `now`, concurrently."""
        now = now or self._clock()
        due = sorted(
            (t for t in self.pending() if t.fire_at <= now),
            key=lambda t: t.fire_at,
        )
        for timer in due:
            self._remove(timer.key)
        await asyncio.gather(*(self._fire(t) for t in due))
        return len(due)

    async def shutdown(self) -> None:
        self._scheduler.remove_all_jobs()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    async def _fire(self, timer: PendingTimer) -> None:
        try:
            await self._on_fire(timer)
        except Exception as exc:
            logger.error(
                "timer.fire_failed",
                exc_info=True,
                extra={
                    "application_id": timer.application_id,
                    "offset_index": timer.offset_index,
                    "error": str(exc)[:500],
                    "error_type": type(exc).__name__,
                },
            )

    def _remove(self, key: TimerKey) -> bool:
        try:
            self._scheduler.remove_job(_job_id(key))
        except JobLookupError:
            return False
        return True
