"""
APScheduler configuration and job scheduling for r2backup.

Manages:
- The backup run fired once at startup
- The recurring backup run (cron expression, configured timezone)
- Skipping triggers that fire while a run is still in progress
"""

import logging
import threading
from datetime import datetime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.executors.pool import ThreadPoolExecutor

from r2backup.backup.executor import run_backup_job

logger = logging.getLogger(__name__)

SCHEDULED_JOB_ID = 'backup_scheduled'
STARTUP_JOB_ID = 'backup_startup'


class ScheduleRegistrationError(Exception):
    """Raised when the backup schedule cannot be registered or started."""
    pass


class BackupScheduler:
    """
    Owns the APScheduler instance that triggers backup runs.

    start() registers the jobs and returns the scheduler itself; callers
    that want the process to stay up call wait(), and stop() ends both the
    timer and any wait().
    """

    def __init__(self, config, store, run_job=None):
        """
        Args:
            config: BackupConfig for the job
            store: ObjectStore passed to every run
            run_job: Callable(config, store) executing one run
                (default: run_backup_job)
        """
        self.config = config
        self.store = store
        self.run_job = run_job or run_backup_job
        self.scheduler = None

        self._run_lock = threading.Lock()
        self._stopped = threading.Event()

    def start(self, run_immediately: bool = True) -> 'BackupScheduler':
        """
        Register the recurring backup and start the timer thread.

        Args:
            run_immediately: Also fire one run right away

        Returns:
            self, as the handle to wait() on or stop()

        Raises:
            ScheduleRegistrationError: If the schedule is invalid or the
                scheduler cannot start
        """
        if self.scheduler is not None and self.scheduler.running:
            logger.info("Scheduler already running")
            return self

        try:
            tz = self.config.tzinfo
            trigger = CronTrigger.from_crontab(self.config.schedule, timezone=tz)
        except Exception as e:
            raise ScheduleRegistrationError(
                f"Invalid backup schedule {self.config.schedule!r}: {e}"
            ) from e

        try:
            self.scheduler = BackgroundScheduler(
                executors={'default': ThreadPoolExecutor(max_workers=1)},
                job_defaults={
                    'coalesce': True,  # Combine multiple pending instances into one
                    'max_instances': 1,  # Only one instance of a job at a time
                    'misfire_grace_time': 300  # 5 minutes grace period for misfires
                },
                timezone=tz
            )

            self.scheduler.add_job(
                func=self._execute_backup_wrapper,
                trigger=trigger,
                id=SCHEDULED_JOB_ID,
                name=f"Backup: {self.config.backup_name}",
                replace_existing=True
            )

            if run_immediately:
                self.scheduler.add_job(
                    func=self._execute_backup_wrapper,
                    trigger=DateTrigger(run_date=datetime.now(tz) + timedelta(seconds=1), timezone=tz),
                    id=STARTUP_JOB_ID,
                    name=f"Startup backup: {self.config.backup_name}",
                    replace_existing=True
                )

            self.scheduler.start()
        except Exception as e:
            raise ScheduleRegistrationError(f"Failed to start backup scheduler: {e}") from e

        self._stopped.clear()
        job = self.scheduler.get_job(SCHEDULED_JOB_ID)
        next_run = job.next_run_time.isoformat() if job and job.next_run_time else 'N/A'
        logger.info(
            f"Backup scheduled ({self.config.schedule}, {self.config.timezone}); next run: {next_run}"
        )
        return self

    def stop(self, wait: bool = True):
        """Stop the timer and release anyone blocked in wait()."""
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Backup scheduler stopped")
        self._stopped.set()

    def wait(self, timeout: float = None) -> bool:
        """
        Block until stop() is called.

        Returns:
            True if the scheduler was stopped, False on timeout
        """
        return self._stopped.wait(timeout)

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    @property
    def is_busy(self) -> bool:
        return self._run_lock.locked()

    def run_now(self):
        """
        Run one backup synchronously, unless a run is already in progress.

        Returns:
            JobResult, or None if the run was skipped
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Backup run already in progress, skipping this trigger")
            return None

        try:
            return self.run_job(self.config, self.store)
        finally:
            self._run_lock.release()

    def _execute_backup_wrapper(self):
        """Entry point for APScheduler; never lets an exception reach the timer thread."""
        logger.info(f"Starting scheduled backup at {datetime.now(self.config.tzinfo):%Y-%m-%d %H:%M:%S}")
        try:
            result = self.run_now()
        except Exception:
            logger.exception("Scheduled backup raised an unexpected error")
            return

        if result is not None:
            logger.info(f"Backup run finished with status: {result.status}")
