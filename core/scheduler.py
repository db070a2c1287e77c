"""Cron-driven scheduler for recurring evolution jobs.

The scheduler owns one background thread with an explicit start/stop
lifecycle. Jobs run on worker threads; a job that is still running when it
comes due again is skipped. Job failures are logged and recorded, never
propagated into the loop.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from cronsim import CronSim, CronSimError

from memory.errors import NotFoundError, PhaseInProgressError
from memory.types import utc_now

logger = logging.getLogger("mw.scheduler")

JobFunc = Callable[[threading.Event], Any]


@dataclass
class ScheduledJob:
    name: str
    cron_expr: str
    func: JobFunc
    timezone: str = "UTC"
    enabled: bool = True
    misfire_grace_seconds: int = 300
    next_run: datetime | None = None
    last_run: datetime | None = None
    last_status: str | None = None  # "success" | "error" | "skipped" | "cancelled"
    last_error: str | None = None
    last_result: Any = None

    def status(self, running: bool) -> dict[str, Any]:
        return {
            "cron": self.cron_expr,
            "enabled": self.enabled,
            "running": running,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_status": self.last_status,
            "last_error": self.last_error,
        }


def next_fire_time(cron_expr: str, after: datetime, timezone: str = "UTC") -> datetime | None:
    """Return the first fire time strictly after ``after``, in UTC."""
    tz = UTC if timezone == "UTC" else ZoneInfo(timezone)
    local = after.astimezone(tz)
    try:
        fire = next(CronSim(cron_expr, local))
    except StopIteration:
        return None
    return fire.astimezone(UTC)


def _result_payload(result: Any) -> Any:
    as_dict = getattr(result, "as_dict", None)
    if callable(as_dict):
        return as_dict()
    return result


class EvolutionScheduler:
    """Registry of named cron jobs plus the loop that fires them."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        poll_seconds: float = 60.0,
    ) -> None:
        self.clock = clock
        self.poll_seconds = poll_seconds
        self._jobs: dict[str, ScheduledJob] = {}
        self._job_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._stop = threading.Event()
        self._wakeup = threading.Event()
        self._thread: threading.Thread | None = None
        self._workers: set[threading.Thread] = set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # Registry

    def register(self, name: str, cron_expr: str, func: JobFunc, timezone: str = "UTC") -> ScheduledJob:
        """Add a job, replacing any job with the same name."""
        try:
            next_run = next_fire_time(cron_expr, self.clock(), timezone)
        except (ValueError, KeyError, CronSimError) as exc:
            raise ValueError(f"Invalid cron expression '{cron_expr}': {exc}") from exc
        job = ScheduledJob(name=name, cron_expr=cron_expr, func=func, timezone=timezone, next_run=next_run)
        with self._registry_lock:
            if name in self._jobs:
                logger.warning("Job %s already exists, replacing it", name)
            self._jobs[name] = job
            self._job_locks.setdefault(name, threading.Lock())
        self._wakeup.set()
        logger.info("Scheduled job: %s with schedule: %s", name, cron_expr)
        return job

    def unregister(self, name: str) -> None:
        with self._registry_lock:
            if name not in self._jobs:
                raise NotFoundError(f"Job {name} not found")
            del self._jobs[name]
        logger.info("Removed job: %s", name)

    def get(self, name: str) -> ScheduledJob:
        with self._registry_lock:
            job = self._jobs.get(name)
        if job is None:
            raise NotFoundError(f"Job {name} not found")
        return job

    def job_status(self) -> dict[str, dict[str, Any]]:
        with self._registry_lock:
            jobs = list(self._jobs.values())
        return {job.name: job.status(self._job_locks[job.name].locked()) for job in jobs}

    # Lifecycle

    def start(self) -> None:
        if self.is_running:
            logger.warning("Scheduler is already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._main_loop, name="mw-scheduler", daemon=True)
        self._thread.start()
        logger.info("Scheduler started with %d job(s)", len(self._jobs))

    def stop(self, timeout: float | None = None) -> None:
        """Stop the loop and signal running jobs to cancel at their next step."""
        if not self.is_running:
            logger.warning("Scheduler is not running")
            return
        self._stop.set()
        self._wakeup.set()
        if self._thread is not None:
            self._thread.join(timeout)
        for worker in list(self._workers):
            worker.join(timeout)
        self._thread = None
        logger.info("Scheduler stopped")

    def wait(self) -> None:
        """Block until the scheduler thread exits."""
        if self._thread is not None:
            self._thread.join()

    # Execution

    def run_job_now(self, name: str) -> Any:
        """Run a job synchronously in the caller's thread and return its result."""
        job = self.get(name)
        logger.info("Manually triggering job: %s", name)
        # Manual runs get their own cancel event; the loop's stop event may still be set.
        return self._execute(job, reraise=True, cancel_event=threading.Event())

    def _main_loop(self) -> None:
        while not self._stop.is_set():
            self._fire_due_jobs()
            self._wakeup.clear()
            self._wakeup.wait(self._seconds_until_next())

    def _seconds_until_next(self) -> float:
        now = self.clock()
        with self._registry_lock:
            pending = [j.next_run for j in self._jobs.values() if j.enabled and j.next_run]
        if not pending:
            return self.poll_seconds
        delay = (min(pending) - now).total_seconds()
        return max(0.0, min(delay, self.poll_seconds))

    def _fire_due_jobs(self) -> None:
        now = self.clock()
        with self._registry_lock:
            jobs = list(self._jobs.values())
        for job in jobs:
            if not job.enabled or job.next_run is None or job.next_run > now:
                continue
            due = job.next_run
            job.next_run = next_fire_time(job.cron_expr, now, job.timezone)
            if now - due > timedelta(seconds=job.misfire_grace_seconds):
                logger.warning("Job %s misfired (past grace period), skipping to next run", job.name)
                continue
            worker = threading.Thread(
                target=self._execute, args=(job,), name=f"mw-job-{job.name}", daemon=True
            )
            self._workers.add(worker)
            worker.start()
        self._workers = {w for w in self._workers if w.is_alive()}

    def _execute(
        self,
        job: ScheduledJob,
        reraise: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> Any:
        cancel = self._stop if cancel_event is None else cancel_event
        lock = self._job_locks[job.name]
        if not lock.acquire(blocking=False):
            logger.info("Job %s still running, skipping", job.name)
            job.last_status = "skipped"
            if reraise:
                raise PhaseInProgressError(job.name)
            return None
        try:
            logger.info("Running job %s", job.name)
            try:
                result = job.func(cancel)
            except PhaseInProgressError as exc:
                logger.warning("Job %s skipped: %s", job.name, exc)
                job.last_status = "skipped"
                job.last_error = str(exc)
                if reraise:
                    raise
                return None
            except Exception as exc:
                logger.error("Job %s failed: %s", job.name, exc)
                job.last_status = "cancelled" if cancel.is_set() else "error"
                job.last_error = str(exc)
                if reraise:
                    raise
                return None
            job.last_status = "success"
            job.last_error = None
            job.last_result = _result_payload(result)
            logger.info("Job %s completed: %s", job.name, job.last_result)
            return result
        finally:
            job.last_run = self.clock()
            lock.release()
