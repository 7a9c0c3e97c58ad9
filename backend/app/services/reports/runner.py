"""
Report run execution: export, compose, dispatch, advance, reschedule.

A run never stops half way: export or dispatch failures mark the run as
failed, but the schedule is still advanced (depending on
ADVANCE_WATERMARK_ON_FAILURE) and always re-armed.

Only one run per schedule may be in progress across all processes. The
run lease is the schedule row's running_since column, taken with a
conditional UPDATE and cleared when the run ends.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.core.config import EXPORT_DIR, ADVANCE_WATERMARK_ON_FAILURE, RUN_LEASE_TIMEOUT_SECONDS
from app.models.report_schedule import ReportSchedule, DEFAULT_SUBJECT
from app.models.report_run import ReportRun, RunStatus, TriggerType
from app.services.email import send_email, build_from_header, parse_recipients
from app.services.records.base import RecordSource
from app.services.records.database_source import DatabaseRecordSource
from app.services.reports.exporter import (
    build_export_filename,
    export_entries,
    materialize_export,
)

logger = logging.getLogger(__name__)

RECORD_COUNT_PLACEHOLDER = "{record_count}"


class RunState(str, enum.Enum):
    IDLE = "idle"
    EXPORTING = "exporting"
    COMPOSING = "composing"
    DISPATCHING = "dispatching"
    ADVANCING = "advancing"
    FAILED = "failed"


class RunInProgressError(Exception):
    """Raised when a schedule is triggered while one of its runs is still going."""

    def __init__(self, schedule_id: int):
        super().__init__(f"Schedule {schedule_id} is already running")
        self.schedule_id = schedule_id


@dataclass
class RunOutcome:
    """Result of one schedule execution."""
    schedule_id: int
    run_id: Optional[int]
    trigger_type: TriggerType
    record_count: int
    attachment: Optional[Path]
    dispatched: bool
    success: bool
    state: RunState
    completed_at: datetime
    next_run_at: Optional[datetime] = None


def acquire_run_lease(db: Session, schedule_id: int, now: datetime, timeout: timedelta) -> Optional[datetime]:
    """Take the run lease of a schedule.

    A lease older than ``timeout`` belongs to a run that died without
    releasing it and is taken over.

    Returns:
        The lease instant (needed to release it), or None if another run holds it
    """
    # Whole seconds, so the value survives DATETIME columns without fractions
    leased_at = now.replace(microsecond=0)
    result = db.execute(
        update(ReportSchedule)
        .where(ReportSchedule.id == schedule_id)
        .where(or_(
            ReportSchedule.running_since.is_(None),
            ReportSchedule.running_since < leased_at - timeout,
        ))
        .values(running_since=leased_at)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        return None
    return leased_at


def release_run_lease(db: Session, schedule_id: int, leased_at: datetime):
    """Clear the run lease, unless another run has taken it over meanwhile."""
    try:
        db.execute(
            update(ReportSchedule)
            .where(ReportSchedule.id == schedule_id)
            .where(ReportSchedule.running_since == leased_at)
            .values(running_since=None)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception as e:
        logger.error(f"Error releasing run lease of schedule {schedule_id}: {e}", exc_info=True)
        db.rollback()


def compose_body(template: Optional[str], record_count: int) -> str:
    """Substitute every {record_count} placeholder of a message template."""
    return (template or "").replace(RECORD_COUNT_PLACEHOLDER, str(record_count))


def _discard(path: Path):
    try:
        path.unlink()
        logger.debug(f"Deleted export file {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not delete export file {path}: {e}")


def _default_reschedule(schedule: ReportSchedule, now: Optional[datetime] = None) -> Optional[datetime]:
    from app.services.scheduler.scheduler_service import add_schedule_job
    return add_schedule_job(schedule, now=now)


class ReportRunner:
    """Executes report schedules for timer fires and manual triggers."""

    def __init__(
        self,
        db: Session,
        source: Optional[RecordSource] = None,
        send: Callable[..., bool] = send_email,
        reschedule: Optional[Callable[..., Optional[datetime]]] = None,
        clock: Callable[[], datetime] = datetime.now,
        export_dir: Optional[str] = None,
        fallback_dir: Optional[str] = None,
        advance_on_failure: Optional[bool] = None,
        lease_timeout: Optional[timedelta] = None
    ):
        """Initialize runner.

        Args:
            db: Database session used to load and update schedules
            source: Record source (defaults to the forms/entries tables)
            send: Message transport, same signature as send_email
            reschedule: Called as reschedule(schedule, now=...) to re-arm the timer
            clock: Wall clock
            export_dir: Primary export directory (defaults to EXPORT_DIR)
            fallback_dir: Secondary directory (defaults to the system temp dir)
            advance_on_failure: Advance the watermark after failed runs
                (defaults to ADVANCE_WATERMARK_ON_FAILURE)
            lease_timeout: Age after which a run lease counts as abandoned
                (defaults to RUN_LEASE_TIMEOUT_SECONDS)
        """
        self.db = db
        self.source = source if source is not None else DatabaseRecordSource(db)
        self.send = send
        self.reschedule = reschedule if reschedule is not None else _default_reschedule
        self.clock = clock
        self.export_dir = export_dir if export_dir is not None else EXPORT_DIR
        self.fallback_dir = fallback_dir
        self.advance_on_failure = ADVANCE_WATERMARK_ON_FAILURE if advance_on_failure is None else advance_on_failure
        self.lease_timeout = lease_timeout if lease_timeout is not None else timedelta(seconds=RUN_LEASE_TIMEOUT_SECONDS)

    def _load(self, schedule_id: int) -> Optional[ReportSchedule]:
        return self.db.query(ReportSchedule).filter(ReportSchedule.id == schedule_id).first()

    def execute_run(
        self,
        schedule_id: int,
        trigger_type: TriggerType = TriggerType.SCHEDULED
    ) -> Optional[RunOutcome]:
        """Run a schedule once.

        Returns:
            RunOutcome, or None if the schedule does not exist or is inactive

        Raises:
            RunInProgressError: If the schedule is already running
        """
        schedule = self._load(schedule_id)
        if not schedule:
            logger.error(f"Schedule {schedule_id} not found")
            return None
        if not schedule.is_active:
            logger.info(f"Schedule {schedule_id} is not active, skipping")
            return None

        started_at = self.clock()
        leased_at = acquire_run_lease(self.db, schedule_id, started_at, self.lease_timeout)
        if leased_at is None:
            raise RunInProgressError(schedule_id)
        try:
            return self._run(schedule, trigger_type, started_at)
        finally:
            release_run_lease(self.db, schedule_id, leased_at)

    def trigger_run_now(self, schedule_id: int) -> Optional[RunOutcome]:
        """Manual trigger: run, then re-arm the timer as if a run just happened."""
        outcome = self.execute_run(schedule_id, TriggerType.MANUAL)
        if outcome is None:
            return None

        schedule = self._load(schedule_id)
        if schedule:
            try:
                outcome.next_run_at = self.reschedule(schedule, now=self.clock())
                self.db.commit()
            except Exception as e:
                logger.error(f"Error rescheduling schedule {schedule_id} after manual run: {e}", exc_info=True)
                self.db.rollback()
        return outcome

    def _run(self, schedule: ReportSchedule, trigger_type: TriggerType, started_at: datetime) -> RunOutcome:
        schedule_id = schedule.id
        run = ReportRun(
            schedule_id=schedule_id,
            trigger_type=trigger_type,
            status=RunStatus.RUNNING,
            started_at=started_at,
        )
        self.db.add(run)
        self.db.commit()
        run_id = run.id

        errors: List[str] = []
        record_count = 0
        attachment: Optional[Path] = None
        dispatched = False
        state = RunState.EXPORTING
        logger.info(f"Running schedule {schedule_id} ({trigger_type.value}), watermark: {schedule.last_run_at}")

        try:
            result = export_entries(schedule, self.source)
            record_count = result.record_count
            if schedule.form_id is not None:
                filename = build_export_filename(schedule, result.source_title, started_at)
                attachment = materialize_export(result, filename, self.export_dir, self.fallback_dir)
                if attachment is None:
                    errors.append("Export file could not be written")
                else:
                    run.attachment_name = attachment.name

            state = RunState.COMPOSING
            body = compose_body(schedule.message, record_count)
            from_header = build_from_header(schedule.from_name, schedule.from_email)

            state = RunState.DISPATCHING
            try:
                dispatched = bool(self.send(
                    parse_recipients(schedule.recipients),
                    schedule.subject or DEFAULT_SUBJECT,
                    body,
                    from_header=from_header,
                    attachments=[attachment] if attachment else None,
                ))
            finally:
                if attachment is not None:
                    _discard(attachment)

            if not dispatched:
                errors.append("Email dispatch failed")
                state = RunState.FAILED
        except Exception as e:
            logger.error(f"Schedule {schedule_id} failed while {state.value}: {e}", exc_info=True)
            errors.append(f"{state.value}: {e}")
            state = RunState.FAILED
            self.db.rollback()

        return self._advance(
            schedule, schedule_id, run, run_id, trigger_type, state, record_count, attachment, dispatched, errors
        )

    def _advance(
        self,
        schedule: ReportSchedule,
        schedule_id: int,
        run: ReportRun,
        run_id: Optional[int],
        trigger_type: TriggerType,
        state: RunState,
        record_count: int,
        attachment: Optional[Path],
        dispatched: bool,
        errors: List[str]
    ) -> RunOutcome:
        failed = state == RunState.FAILED
        completed_at = self.clock()

        try:
            if not failed or self.advance_on_failure:
                # Watermark never moves backwards
                if schedule.last_run_at is None or completed_at >= schedule.last_run_at:
                    schedule.last_run_at = completed_at
            else:
                logger.warning(f"Schedule {schedule_id} failed, keeping watermark {schedule.last_run_at}")

            run.status = RunStatus.FAILED if failed else RunStatus.SUCCEEDED
            run.record_count = record_count
            run.error = "; ".join(errors) or None
            run.finished_at = completed_at
            self.db.commit()
        except Exception as e:
            # Schedule deleted mid-run, or the database went away
            logger.error(f"Error saving run {run_id} of schedule {schedule_id}: {e}", exc_info=True)
            self.db.rollback()

        next_run_at = None
        current = self._load(schedule_id)
        if current is None:
            logger.warning(f"Schedule {schedule_id} was deleted during run {run_id}, not rescheduling")
        else:
            try:
                next_run_at = self.reschedule(current, now=completed_at)
                self.db.commit()
            except Exception as e:
                logger.error(f"Error rescheduling schedule {schedule_id}: {e}", exc_info=True)
                self.db.rollback()

        logger.info(
            f"Schedule {schedule_id} run {run_id} {'failed' if failed else 'succeeded'}: "
            f"{record_count} records, dispatched={dispatched}, next run: {next_run_at}"
        )
        return RunOutcome(
            schedule_id=schedule_id,
            run_id=run_id,
            trigger_type=trigger_type,
            record_count=record_count,
            attachment=attachment,
            dispatched=dispatched,
            success=not failed,
            state=RunState.FAILED if failed else RunState.IDLE,
            completed_at=completed_at,
            next_run_at=next_run_at,
        )
