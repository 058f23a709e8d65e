"""
Reconciliation scheduler.

One loop thread wakes every few seconds, works out which jobs are due and
hands them to a small thread pool, so a slow job never holds back another.
A job that is still running when its next tick arrives is skipped for that
tick.

    scheduler = build_default_scheduler()
    scheduler.start()
    ...
    scheduler.stop()
"""

import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from zoneinfo import ZoneInfo

from django.core.exceptions import ImproperlyConfigured
from django.db import connections
from django.utils import timezone

from .exceptions import JobAlreadyRunning, UnknownJob
from .reconciliation import JOBS, run_job
from .reminders import ledger_setting

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = 'Asia/Baghdad'

DEFAULT_SCHEDULE = {
    'overdue': {'every_minutes': 15},
    'markPaid': {'every_minutes': 10},
    'lowStock': {'daily_at': '08:30'},
    'reminders': {'daily_at': '09:00'},
}


# ============================================================
# Triggers
# ============================================================

class IntervalTrigger:
    """Fires every `minutes`, aligned to multiples of the interval from local midnight."""

    def __init__(self, minutes, tz):
        minutes = int(minutes)
        if not 1 <= minutes <= 1440:
            raise ImproperlyConfigured(f"Interval must be between 1 and 1440 minutes, got {minutes}")
        self.minutes = minutes
        self.tz = tz

    def next_after(self, dt):
        local = dt.astimezone(self.tz)
        midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
        step = timedelta(minutes=self.minutes)
        candidate = midnight + step * ((local - midnight) // step + 1)

        next_midnight = midnight + timedelta(days=1)
        if candidate > next_midnight:
            candidate = next_midnight
        return candidate

    def __repr__(self):
        return f"IntervalTrigger(every {self.minutes} min)"


class DailyTrigger:
    """Fires once a day at hour:minute local time."""

    def __init__(self, hour, minute, tz):
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ImproperlyConfigured(f"Invalid daily time {hour}:{minute}")
        self.hour = hour
        self.minute = minute
        self.tz = tz

    def next_after(self, dt):
        local = dt.astimezone(self.tz)
        candidate = local.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= local:
            candidate = candidate + timedelta(days=1)
        return candidate

    def __repr__(self):
        return f"DailyTrigger({self.hour:02d}:{self.minute:02d})"


def trigger_from_config(config, tz):
    if 'every_minutes' in config:
        return IntervalTrigger(config['every_minutes'], tz)
    if 'daily_at' in config:
        try:
            hour, minute = (int(part) for part in str(config['daily_at']).split(':'))
        except ValueError:
            raise ImproperlyConfigured(f"daily_at must look like HH:MM, got {config['daily_at']!r}")
        return DailyTrigger(hour, minute, tz)
    raise ImproperlyConfigured(f"Unknown trigger config: {config!r}")


# ============================================================
# Jobs and scheduler
# ============================================================

class ScheduledJob:

    def __init__(self, name, func, trigger):
        self.name = name
        self.func = func
        self.trigger = trigger
        self.next_run = None
        self.running = False
        self.last_run_at = None
        self.last_result = None
        self.last_error = None

    def schedule_from(self, now):
        self.next_run = self.trigger.next_after(now)

    def is_due(self, now):
        return self.next_run is not None and now >= self.next_run

    def __repr__(self):
        return f"ScheduledJob({self.name}, {self.trigger!r}, next={self.next_run})"


class ReconciliationScheduler:
    """
    Owns the scheduling loop thread and the worker pool.

    Job failures are logged and recorded on the job; they never stop the
    loop or any other job.
    """

    def __init__(self, jobs, tz=None, poll_seconds=None, max_workers=None):
        self.jobs = {job.name: job for job in jobs}
        if isinstance(tz, str) or tz is None:
            tz = ZoneInfo(tz or ledger_setting('SCHEDULER_TIMEZONE', DEFAULT_TIMEZONE))
        self.tz = tz
        self.poll_seconds = poll_seconds or ledger_setting('SCHEDULER_POLL_SECONDS', 5)
        self.max_workers = max_workers or max(len(self.jobs), 1)

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread = None
        self._executor = None

    @property
    def is_running(self):
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self):
        with self._lock:
            if self.is_running:
                logger.warning("[Scheduler] Already running")
                return

            self._stop_event.clear()
            now = timezone.now()
            for job in self.jobs.values():
                job.schedule_from(now)
                logger.info(f"[Scheduler] {job.name}: {job.trigger!r}, next run {job.next_run.isoformat()}")

            self._ensure_executor()
            self._thread = threading.Thread(target=self._loop, name='ledger-scheduler', daemon=True)
            self._thread.start()

        logger.info(f"[Scheduler] Started with {len(self.jobs)} job(s), timezone {self.tz}")

    def stop(self, wait=True):
        self._stop_event.set()

        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None

        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

        logger.info("[Scheduler] Stopped")

    def tick(self, now=None):
        """Submit every due job. Returns the futures of the jobs submitted."""
        now = now or timezone.now()
        futures = []
        for job in self.jobs.values():
            if not job.is_due(now):
                continue
            job.schedule_from(now)
            future = self._submit(job)
            if future is not None:
                futures.append(future)
        return futures

    def run_now(self, name):
        """Run one job immediately through the same path as a timer tick and wait for it."""
        job = self.jobs.get(name)
        if job is None:
            raise UnknownJob(f"Unknown job: {name}")
        future = self._submit(job)
        if future is None:
            return None
        return future.result()

    def _loop(self):
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("[Scheduler] Tick failed")
            self._stop_event.wait(self.poll_seconds)

    def _ensure_executor(self):
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix='ledger-job',
            )
        return self._executor

    def _submit(self, job):
        with self._lock:
            if job.running:
                logger.warning(f"[Scheduler] {job.name} still running, skipping this tick")
                return None
            job.running = True
            executor = self._ensure_executor()
        return executor.submit(self._execute, job)

    def _execute(self, job):
        started = timezone.now()
        try:
            result = job.func()
            job.last_result = result
            job.last_error = None
            logger.info(f"[Scheduler] {job.name} finished in {(timezone.now() - started).total_seconds():.2f}s: {result}")
            return result
        except JobAlreadyRunning:
            logger.warning(f"[Scheduler] {job.name} is running in another process, skipped")
        except Exception as e:
            job.last_error = str(e)
            logger.exception(f"[Scheduler] {job.name} failed")
        finally:
            job.last_run_at = started
            job.running = False
            connections.close_all()
        return None


def build_default_scheduler(schedule=None, tz=None):
    """
    Scheduler with the registered reconciliation jobs and the triggers from
    LEDGER['SCHEDULE']. A job configured as None is left out.
    """
    schedule = schedule or ledger_setting('SCHEDULE', DEFAULT_SCHEDULE)
    tz = ZoneInfo(tz or ledger_setting('SCHEDULER_TIMEZONE', DEFAULT_TIMEZONE))

    jobs = []
    for name, config in schedule.items():
        if config is None:
            logger.info(f"[Scheduler] {name} disabled")
            continue
        if name not in JOBS:
            raise ImproperlyConfigured(f"LEDGER['SCHEDULE'] names unknown job {name!r}")
        jobs.append(ScheduledJob(name, functools.partial(run_job, name), trigger_from_config(config, tz)))

    return ReconciliationScheduler(jobs, tz=tz)
