"""
Background job scheduler using APScheduler.

This module sets up and manages the background scheduler for ChoreQuest:
the daily assignment generation cycle and the nightly ledger audit.
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
import logging
import atexit

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = BackgroundScheduler()


def init_scheduler(app):
    """
    Initialize and start the background scheduler.

    Args:
        app: Flask application instance
    """
    # Check if scheduler should be enabled
    scheduler_enabled = app.config.get('SCHEDULER_ENABLED', True)

    if not scheduler_enabled:
        logger.info("Background scheduler disabled via configuration")
        return

    # Don't run scheduler in testing mode
    if app.config.get('TESTING', False):
        logger.info("Background scheduler disabled in testing mode")
        return

    if scheduler.running:
        logger.info("Background scheduler already running")
        return

    # Import job functions
    from chorequest.jobs.chore_generation import generate_chores
    from chorequest.jobs.ledger_audit import audit_wallet_balances

    # Configure scheduler timezone
    timezone = app.config.get('SCHEDULER_TIMEZONE', 'Europe/London')

    # Create job wrappers that run within app context
    def with_app_context(func):
        """Wrap job function to run within Flask app context."""
        def wrapper():
            with app.app_context():
                func()
        wrapper.__name__ = func.__name__
        return wrapper

    # Daily chore generation
    scheduler.add_job(
        with_app_context(generate_chores),
        trigger=CronTrigger(hour=app.config.get('GENERATION_HOUR', 5), minute=0, timezone=timezone),
        id='daily_chore_generation',
        name='Generate daily and weekly chore assignments',
        replace_existing=True
    )

    # Audit wallet balances nightly
    scheduler.add_job(
        with_app_context(audit_wallet_balances),
        trigger=CronTrigger(hour=app.config.get('LEDGER_AUDIT_HOUR', 2), minute=0, timezone=timezone),
        id='ledger_audit',
        name='Audit wallet balances against transactions',
        replace_existing=True
    )

    # Start the scheduler
    scheduler.start()
    logger.info("Background scheduler started with %d jobs", len(scheduler.get_jobs()))

    # Register shutdown handler
    atexit.register(shutdown_scheduler)


def shutdown_scheduler():
    """Shutdown the background scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")


def run_job_now(job_id: str):
    """
    Run a scheduled job immediately (useful for testing/admin).

    Args:
        job_id: ID of the job to run

    Returns:
        bool: True if job was found and triggered, False otherwise
    """
    job = scheduler.get_job(job_id)
    if job:
        job.func()
        return True
    return False


def get_job_status():
    """
    Get status of all scheduled jobs.

    Returns:
        list: List of job status dictionaries
    """
    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': job.next_run_time.isoformat() if getattr(job, 'next_run_time', None) else None,
            'trigger': str(job.trigger)
        })
    return jobs
