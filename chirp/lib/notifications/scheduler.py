from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Optional

from .service import NotificationService

logger = logging.getLogger("chirp.notifications.scheduler")


class SummaryScheduler:
    """Fire the daily summary once a day at a fixed local time."""

    def __init__(
        self,
        service: NotificationService,
        schedule_time: time,
        *,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._service = service
        self._schedule_time = schedule_time
        self._tz = tz
        self._clock = clock or self._now
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    def _now(self) -> datetime:
        if self._tz is not None:
            return datetime.now(self._tz)
        return datetime.now().astimezone()

    def start(self) -> None:
        if self._task:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            now = self._clock()
            next_run = self._next_run(now)
            wait_seconds = self.seconds_until(now, next_run)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=wait_seconds)
                break
            except asyncio.TimeoutError:
                pass
            await self._fire()

    async def _fire(self) -> None:
        try:
            outcome = await asyncio.to_thread(self._service.send_daily_summary)
        except Exception:  # noqa: BLE001 - scheduler loop should never crash
            logger.exception("scheduler.daily_summary_failed")
            return
        logger.info(
            "scheduler.daily_summary_sent",
            extra={"requested": outcome.requested, "failed": outcome.report.failed},
        )

    def _next_run(self, now: datetime) -> datetime:
        if self._tz is None:
            local = now.astimezone().replace(tzinfo=None)
            return self.next_occurrence(local, self._schedule_time).astimezone()
        return self.next_occurrence(now.astimezone(self._tz), self._schedule_time)

    @staticmethod
    def seconds_until(now: datetime, target: datetime) -> float:
        # Same-tzinfo subtraction is wall-clock; go through UTC for elapsed time.
        delta = target.astimezone(timezone.utc) - now.astimezone(timezone.utc)
        return max(delta.total_seconds(), 0.0)

    @staticmethod
    def next_occurrence(now: datetime, schedule_time: time) -> datetime:
        candidate = datetime.combine(now.date(), schedule_time, tzinfo=now.tzinfo)
        if candidate <= now:
            candidate = datetime.combine(now.date() + timedelta(days=1), schedule_time, tzinfo=now.tzinfo)
        return candidate
