"""
Deadline reminder scheduling.

Turns an application's deadline into pending email timers, replaces them when
the deadline changes, cancels them on delete, and rebuilds all of them from the
database at startup (the registry itself holds nothing across restarts).

Usage:
    reminders = build_reminder_scheduler(settings)
    reminders.start()                                   # startup recovery (+ optional rescan)
    reminders.schedule_application(application, email)  # on create/update with a deadline
    reminders.cancel_application(application.id)        # on delete / deadline cleared
    await reminders.shutdown()
"""
import asyncio
from datetime import datetime
from typing import Callable, List, Optional, Set

from fastapi import Request

from app.config import Settings
from app.database import AsyncSessionLocal
from app.models.application import Application
from app.services import application_store
from app.services.notifier import Notifier, build_transport
from app.services.reminder_policy import plan, render_body, to_naive_utc, utcnow
from app.services.timer_registry import PendingTimer, TimerRegistry
from app.utils import metrics
from app.utils.logger import logger


class ReminderScheduler:
    def __init__(
        self,
        notifier: Notifier,
        session_factory=AsyncSessionLocal,
        clock: Callable[[], datetime] = utcnow,
        sleep=asyncio.sleep,
        autostart: bool = True,
    ):
        self.notifier = notifier
        self.session_factory = session_factory
        self.clock = clock
        self.registry = TimerRegistry(on_fire=self._deliver, clock=clock, autostart=autostart)
        self._sleep = sleep
        self._background: Set[asyncio.Task] = set()
        # Application ids scheduled/cancelled by requests while a recovery scan is reading
        self._scan_touched: Optional[Set[int]] = None

    def schedule_application(self, application: Application, recipient: str) -> List[PendingTimer]:
        """Replace the application's timers with a fresh set for its current deadline."""
        self._touch(application.id)
        return self._schedule(application, recipient)

    def _schedule(self, application: Application, recipient: str) -> List[PendingTimer]:
        cancelled = self.registry.cancel_application(application.id)
        if cancelled:
            metrics.inc("reminders.superseded", cancelled)

        deadline = to_naive_utc(application.deadline)
        if deadline is None:
            return []

        body = render_body(application.title, deadline)
        scheduled = []
        for planned in plan(deadline, self.clock()):
            timer = PendingTimer(
                application_id=application.id,
                offset_index=planned.offset_index,
                fire_at=planned.fire_at,
                deadline=deadline,
                recipient=recipient,
                subject=planned.subject,
                body=body,
            )
            if self.registry.schedule(timer):
                scheduled.append(timer)

        metrics.inc("reminders.scheduled", len(scheduled))
        logger.info(
            "reminder.scheduled",
            extra={"application_id": application.id, "scheduled": len(scheduled), "cancelled": cancelled},
        )
        return scheduled

    def cancel_application(self, application_id: int) -> int:
        self._touch(application_id)
        cancelled = self.registry.cancel_application(application_id)
        if cancelled:
            metrics.inc("reminders.cancelled", cancelled)
            logger.info("reminder.cancelled", extra={"application_id": application_id, "cancelled": cancelled})
        return cancelled

    def pending(self, application_ids: Optional[Set[int]] = None) -> List[PendingTimer]:
        timers = self.registry.pending()
        if application_ids is None:
            return timers
        return [t for t in timers if t.application_id in application_ids]

    async def recover_all(self) -> int:
        """
        Re-derive timers for every application whose deadline is still ahead.

        Best effort: a store failure is logged and nothing is scheduled for this
        run. Safe to call repeatedly since slots are replaced, not duplicated.
        """
        now = self.clock()
        targets = []
        touched: Set[int] = set()
        self._scan_touched = touched
        try:
            async with self.session_factory() as db:
                applications = await application_store.find_applications_with_future_deadline(db, now)
                owners = {}
                for application in applications:
                    if application.user_id not in owners:
                        owners[application.user_id] = await application_store.find_user_by_id(db, application.user_id)
                    owner = owners[application.user_id]
                    if owner is not None:
                        targets.append((application, owner.email))
        except Exception as exc:
            logger.error(
                "reminder.recovery_failed",
                exc_info=True,
                extra={"error": str(exc)[:500], "error_type": type(exc).__name__},
            )
            return 0
        finally:
            self._scan_touched = None

        total = 0
        for application, email in targets:
            # A request already rescheduled or cancelled it with fresher data
            if application.id in touched:
                continue
            total += len(self._schedule(application, email))

        logger.info("reminder.recovery_completed", extra={"scheduled": total})
        return total

    async def run_periodic_recovery(self, interval_hours: int) -> None:
        """Rerun recovery on an interval to heal reminders lost to a failed scan."""
        while True:
            await self._sleep(interval_hours * 3600)
            await self.recover_all()

    def start(self, rescan_hours: int = 0) -> None:
        """Kick off startup recovery (and the optional rescan) without blocking startup."""
        self.registry.start()
        self._spawn(self.recover_all())
        if rescan_hours > 0:
            self._spawn(self.run_periodic_recovery(rescan_hours))

    async def shutdown(self) -> None:
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()
        await self.registry.shutdown()

    def _touch(self, application_id: int) -> None:
        if self._scan_touched is not None:
            self._scan_touched.add(application_id)

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _deliver(self, timer: PendingTimer) -> None:
        """Fire callback: re-check the application is still current, then email."""
        log_extra = {"application_id": timer.application_id, "offset_index": timer.offset_index}

        try:
            async with self.session_factory() as db:
                application = await application_store.find_application_by_id(db, timer.application_id)
                owner = None
                if application is not None:
                    owner = await application_store.find_user_by_id(db, application.user_id)
        except Exception as exc:
            # Store unavailable: fall back to the snapshot taken at schedule time
            logger.warning("reminder.recheck_failed", extra={**log_extra, "error": str(exc)[:500]})
        else:
            reason = None
            if application is None:
                reason = "application_deleted"
            elif to_naive_utc(application.deadline) != timer.deadline:
                reason = "deadline_changed"
            elif owner is None or owner.email != timer.recipient:
                reason = "recipient_changed"
            if reason:
                metrics.inc("reminders.skipped")
                logger.info("reminder.skipped", extra={**log_extra, "reason": reason})
                return

        await self.notifier.notify(timer.recipient, timer.subject, timer.body)


def build_reminder_scheduler(settings: Settings) -> ReminderScheduler:
    notifier = Notifier(build_transport(settings), sender=settings.mail_sender)
    return ReminderScheduler(notifier)


def get_reminder_scheduler(request: Request) -> Optional[ReminderScheduler]:
    """FastAPI dependency; None when reminders are disabled."""
    return getattr(request.app.state, "reminders", None)
