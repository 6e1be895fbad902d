"""Named timer jobs with replace-on-reschedule semantics.

The registry owns at most one timer per job name. Scheduling a name that is
already registered cancels the old timer and arms the new one while holding
the registry lock, so two handles for the same job never coexist.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

JobCallback = Callable[[], Any]
Clock = Callable[[], datetime]


class TimerHandle(Protocol):
    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def _local_now() -> datetime:
    # Daily schedules are wall-clock times on the host
    return datetime.now().astimezone()


def next_daily_run(now: datetime, hour: int, minute: int) -> datetime:
    """First occurrence of hour:minute strictly after ``now`` (same timezone)."""
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


@dataclass(slots=True)
class _Job:
    name: str
    callback: JobCallback
    next_run_after: Callable[[datetime], datetime]
    timer: Optional[TimerHandle] = None
    next_run: Optional[datetime] = None


class JobRegistry:
    def __init__(self, clock: Clock | None = None, timer_factory: TimerFactory | None = None) -> None:
        self._clock = clock or _local_now
        self._timer_factory = timer_factory or threading.Timer
        self._jobs: dict[str, _Job] = {}
        self._lock = threading.Lock()

    def schedule_daily(self, name: str, hour: int, minute: int, callback: JobCallback) -> datetime:
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"Invalid daily schedule {hour:02d}:{minute:02d}")
        return self._schedule(name, callback, lambda now: next_daily_run(now, hour, minute))

    def schedule_interval(self, name: str, seconds: float, callback: JobCallback) -> datetime:
        if seconds <= 0:
            raise ValueError("Interval must be positive")
        return self._schedule(name, callback, lambda now: now + timedelta(seconds=seconds))

    def cancel(self, name: str) -> bool:
        with self._lock:
            job = self._jobs.pop(name, None)
            if job is None:
                return False
            if job.timer is not None:
                job.timer.cancel()
        logger.info(f"Cancelled scheduled job '{name}'")
        return True

    def shutdown(self) -> None:
        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()
            for job in jobs:
                if job.timer is not None:
                    job.timer.cancel()

    def next_run(self, name: str) -> Optional[datetime]:
        with self._lock:
            job = self._jobs.get(name)
            return job.next_run if job else None

    def job_names(self) -> list[str]:
        with self._lock:
            return sorted(self._jobs)

    def _schedule(self, name: str, callback: JobCallback, next_run_after: Callable[[datetime], datetime]) -> datetime:
        job = _Job(name=name, callback=callback, next_run_after=next_run_after)
        with self._lock:
            existing = self._jobs.get(name)
            if existing is not None:
                logger.info(f"Replacing existing job '{name}'")
                if existing.timer is not None:
                    existing.timer.cancel()
            self._jobs[name] = job
            self._arm(job)
        logger.info(f"Job '{name}' scheduled for {job.next_run.isoformat()}")
        return job.next_run

    def _arm(self, job: _Job, after: Optional[datetime] = None) -> None:
        # Caller holds self._lock
        now = self._clock()
        job.next_run = job.next_run_after(max(now, after) if after is not None else now)
        delay = max(0.0, (job.next_run - now).total_seconds())
        timer = self._timer_factory(delay, lambda: self._fire(job))
        timer.daemon = True
        job.timer = timer
        timer.start()

    def _fire(self, job: _Job) -> None:
        with self._lock:
            if self._jobs.get(job.name) is not job:
                # Replaced or cancelled after the timer elapsed
                return
        try:
            job.callback()
        except Exception:
            logger.exception(f"Scheduled job '{job.name}' failed; it will run again at its next tick")
        with self._lock:
            if self._jobs.get(job.name) is job:
                # Timers may wake slightly early; never re-arm for the run that just fired
                self._arm(job, after=job.next_run)
