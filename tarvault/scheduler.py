"""
APScheduler configuration for tarvault.

Without a BACKUP_SCHEDULE the agent runs a single pass and exits (the
container/cron model). With one, passes run on the crontab expression
until the process is stopped.
"""

import logging

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from tarvault import create_agent
from tarvault.backup.executor import execute_backup_pass


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None

BACKUP_JOB_ID = 'backup_pass'


def run_backup_pass(config, storage):
    """
    Run one backup pass in scheduler context.

    Exceptions are logged so a failed pass never stops the scheduler.
    """
    try:
        summary = execute_backup_pass(config, storage)
        logger.info(
            f"Backup pass finished: {summary['folders_processed']} succeeded, "
            f"{summary['folders_failed']} failed"
        )
        return summary
    except Exception as e:
        logger.error(f"Backup pass failed: {e}", exc_info=True)
        return None


def init_scheduler(config, storage):
    """
    Initialize and configure APScheduler.

    Args:
        config: Config instance with BACKUP_SCHEDULE set
        storage: Remote storage client

    Raises:
        ValueError: If BACKUP_SCHEDULE is not a valid crontab expression
    """
    global scheduler

    if scheduler is not None:
        return scheduler

    tz = config.timezone
    trigger = CronTrigger.from_crontab(config.BACKUP_SCHEDULE, timezone=tz)

    jobstores = {
        'default': MemoryJobStore()
    }

    # One worker: passes never overlap
    executors = {
        'default': ThreadPoolExecutor(max_workers=1)
    }

    job_defaults = {
        'coalesce': True,  # Combine multiple pending runs into one
        'max_instances': 1,  # Only one pass at a time
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    scheduler = BlockingScheduler(
        jobstores=jobstores,
        executors=executors,
        job_defaults=job_defaults,
        timezone=tz
    )

    scheduler.add_job(
        func=run_backup_pass,
        args=[config, storage],
        trigger=trigger,
        id=BACKUP_JOB_ID,
        name='Scheduled Backup Pass',
        replace_existing=True
    )

    logger.info(f"Scheduled backup pass: {config.BACKUP_SCHEDULE}")
    return scheduler


def start_scheduler():
    """
    Start the scheduler. Blocks until the scheduler is shut down.
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    if scheduler.running:
        logger.info(f"Scheduler already running (state={scheduler.state})")
        return

    logger.info("Starting scheduler")
    scheduler.start()


def stop_scheduler():
    """Stop the scheduler."""
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def run_agent(config_name=None):
    """
    Entry point: one pass, or scheduled passes when BACKUP_SCHEDULE is set.

    Returns:
        Summary of the single pass, or None in scheduled mode

    Raises:
        SourceError: If the backup root cannot be listed in single-pass mode
    """
    config, storage = create_agent(config_name)

    if not config.BACKUP_SCHEDULE:
        # Single pass: a fatal error propagates and ends the process
        return execute_backup_pass(config, storage)

    init_scheduler(config, storage)
    try:
        start_scheduler()
    except (KeyboardInterrupt, SystemExit):
        stop_scheduler()
    return None
