"""
Scheduler service for registering report schedules with APScheduler.

Each report schedule owns exactly one APScheduler job, keyed by
``report_schedule_{id}``. The job first fires at the computed next fire time
and then repeats at the schedule's interval; every completed run replaces the
job with a freshly computed one.

Only the process that started the scheduler holds jobs. Other processes
(extra web workers, scripts) just store ``next_run_at``, and the owning
process picks their changes up in ``reconcile_schedules``.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from app.core.config import RECONCILE_INTERVAL_SECONDS
from app.models.report_schedule import ReportSchedule
from app.models.report_run import TriggerType
from app.services.reports.recurrence import compute_next_fire_time, is_configured, repeat_interval
from app.core.database import SessionLocal

logger = logging.getLogger(__name__)

JOB_ID_PREFIX = "report_schedule_"
RECONCILE_JOB_ID = "reconcile_report_schedules"

# Late fires within this window still run (e.g. after a short outage)
MISFIRE_GRACE_SECONDS = 3600

# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None


def get_scheduler() -> BackgroundScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler()
    return _scheduler


def start_scheduler():
    """Start the scheduler, register every active schedule and keep them in sync."""
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("✅ Scheduler started")
        load_all_schedules(scheduler=scheduler)
        scheduler.add_job(
            reconcile_schedules,
            trigger=IntervalTrigger(seconds=RECONCILE_INTERVAL_SECONDS),
            id=RECONCILE_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
    else:
        logger.debug("Scheduler already running")
def stop_scheduler():
    """Stop the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    _scheduler = None


def job_id_for(schedule_id: int) -> str:
    return f"{JOB_ID_PREFIX}{schedule_id}"


def calculate_next_run(schedule: ReportSchedule, now: Optional[datetime] = None) -> Optional[datetime]:
    """Calculate the next run time for a schedule."""
    return compute_next_fire_time(schedule, now)


def execute_schedule(schedule_id: int):
    """Timer callback: run a report schedule."""
    from app.services.reports.runner import ReportRunner, RunInProgressError

    db = SessionLocal()
    try:
        outcome = ReportRunner(db).execute_run(schedule_id, TriggerType.SCHEDULED)
        if outcome:
            logger.info(
                f"Scheduled run of schedule {schedule_id} finished: "
                f"{outcome.record_count} records, success={outcome.success}"
            )
    except RunInProgressError:
        logger.warning(f"Schedule {schedule_id} is already running, skipping timer fire")
    except Exception as e:
        logger.error(f"Error executing schedule {schedule_id}: {e}", exc_info=True)
        db.rollback()
    finally:
        db.close()


def _register_job(
    scheduler: BackgroundScheduler,
    schedule: ReportSchedule,
    next_run: datetime,
    interval: timedelta
) -> bool:
    try:
        scheduler.add_job(
            execute_schedule,
            trigger=IntervalTrigger(seconds=int(interval.total_seconds()), start_date=next_run),
            args=[schedule.id],
            id=job_id_for(schedule.id),
            replace_existing=True,
            next_run_time=next_run,
            max_instances=1,  # Prevent overlapping executions
            coalesce=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
        )
    except Exception as e:
        logger.error(f"Error adding schedule job for schedule {schedule.id}: {e}", exc_info=True)
        return False
    logger.info(f"Added schedule job {job_id_for(schedule.id)}, next run: {next_run}, interval: {interval}")
    return True


def add_schedule_job(
    schedule: ReportSchedule,
    now: Optional[datetime] = None,
    scheduler: Optional[BackgroundScheduler] = None
) -> Optional[datetime]:
    """(Re)register the timer of a schedule.

    Any previous job of the schedule is removed first. Inactive or
    unconfigured schedules end up without a job. On a scheduler that is not
    running (a process that does not own the timers) only ``next_run_at`` is
    updated; the owning process registers the job when it reconciles.

    Args:
        schedule: Schedule to register
        now: Reference instant for the next fire time (defaults to now)
        scheduler: Scheduler to register with (defaults to the global one)

    Returns:
        Next fire time, or None if the schedule has no timer
    """
    if scheduler is None:
        scheduler = get_scheduler()

    if scheduler.running:
        remove_schedule_job(schedule.id, scheduler=scheduler)

    if not schedule.is_active:
        schedule.next_run_at = None
        return None

    next_run = compute_next_fire_time(schedule, now)
    interval = repeat_interval(schedule.schedule_type, schedule.repeat_every)
    if next_run is None or interval is None:
        logger.info(f"Schedule {schedule.id} is not configured, no timer registered")
        schedule.next_run_at = None
        return None

    if not scheduler.running:
        schedule.next_run_at = next_run
        logger.info(f"Schedule {schedule.id} next run: {next_run}, left to the scheduler process")
        return next_run

    if not _register_job(scheduler, schedule, next_run, interval):
        schedule.next_run_at = None
        return None

    schedule.next_run_at = next_run
    return next_run


def remove_schedule_job(schedule_id: int, scheduler: Optional[BackgroundScheduler] = None) -> bool:
    """Remove the timer of a schedule. Returns False if there was none."""
    if scheduler is None:
        scheduler = get_scheduler()
    job_id = job_id_for(schedule_id)
    try:
        scheduler.remove_job(job_id)
        logger.info(f"Removed schedule job {job_id}")
        return True
    except JobLookupError:
        logger.debug(f"Job {job_id} not found or already removed")
        return False
def get_registered_fire_time(
    schedule_id: int,
    scheduler: Optional[BackgroundScheduler] = None
) -> Optional[datetime]:
    """Next fire time currently registered for a schedule (naive local time)."""
    if scheduler is None:
        scheduler = get_scheduler()
    job = scheduler.get_job(job_id_for(schedule_id))
    if job is None or job.next_run_time is None:
        return None
    return job.next_run_time.replace(tzinfo=None)


def load_all_schedules(
    db: Optional[Session] = None,
    scheduler: Optional[BackgroundScheduler] = None
) -> int:
    """Register every active schedule (startup reconciliation).

    Returns:
        Number of schedules with a registered timer
    """
    owns_session = db is None
    if owns_session:
        db = SessionLocal()
    try:
        schedules = db.query(ReportSchedule).filter(ReportSchedule.is_active == True).all()
        registered = 0
        for schedule in schedules:
            try:
                if add_schedule_job(schedule, scheduler=scheduler):
                    registered += 1
            except Exception as e:
                logger.error(f"Error loading schedule {schedule.id}: {e}", exc_info=True)
        db.commit()
        logger.info(f"Loaded {registered} of {len(schedules)} active schedules")
        return registered
    finally:
        if owns_session:
            db.close()


def reload_schedule(
    schedule_id: int,
    db: Optional[Session] = None,
    scheduler: Optional[BackgroundScheduler] = None
) -> Optional[datetime]:
    """Reload a specific schedule from the database."""
    owns_session = db is None
    if owns_session:
        db = SessionLocal()
    try:
        schedule = db.query(ReportSchedule).filter(ReportSchedule.id == schedule_id).first()
        if not schedule:
            remove_schedule_job(schedule_id, scheduler=scheduler)
            return None
        next_run = add_schedule_job(schedule, scheduler=scheduler)
        db.commit()
        return next_run
    finally:
        if owns_session:
            db.close()


def reconcile_schedules(
    db: Optional[Session] = None,
    scheduler: Optional[BackgroundScheduler] = None,
    now: Optional[datetime] = None
) -> int:
    """Bring the registered jobs in line with the schedules table.

    Picks up schedules created, edited, run or deleted by other processes.
    Schedules with a run in progress are left alone, the run re-arms them.

    Returns:
        Number of jobs added, replaced or removed
    """
    if scheduler is None:
        scheduler = get_scheduler()
    if now is None:
        now = datetime.now()
    owns_session = db is None
    if owns_session:
        db = SessionLocal()
    try:
        changed = 0
        wanted = set()
        for schedule in db.query(ReportSchedule).filter(ReportSchedule.is_active == True).all():
            job_id = job_id_for(schedule.id)
            wanted.add(job_id)
            if schedule.running_since is not None:
                continue

            if not is_configured(schedule):
                wanted.discard(job_id)
                continue

            interval = repeat_interval(schedule.schedule_type, schedule.repeat_every)
            job = scheduler.get_job(job_id)
            registered = get_registered_fire_time(schedule.id, scheduler=scheduler)
            if (
                job is not None
                and job.trigger.interval == interval
                and registered is not None
                and registered == schedule.next_run_at
            ):
                continue

            try:
                if schedule.next_run_at is not None and schedule.next_run_at > now:
                    # Keep the fire time another process already computed
                    if _register_job(scheduler, schedule, schedule.next_run_at, interval):
                        changed += 1
                elif add_schedule_job(schedule, now=now, scheduler=scheduler):
                    changed += 1
            except Exception as e:
                logger.error(f"Error reconciling schedule {schedule.id}: {e}", exc_info=True)

        for job in scheduler.get_jobs():
            if job.id.startswith(JOB_ID_PREFIX) and job.id not in wanted:
                try:
                    scheduler.remove_job(job.id)
                    logger.info(f"Removed schedule job {job.id}, schedule is gone or inactive")
                    changed += 1
                except JobLookupError:
                    pass

        db.commit()
        if changed:
            logger.info(f"Reconciled {changed} schedule jobs")
        return changed
    except Exception as e:
        logger.error(f"Error reconciling schedules: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        if owns_session:
            db.close()
