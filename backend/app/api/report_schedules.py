"""
Report schedules API endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, status
import logging
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from apscheduler.schedulers.base import BaseScheduler
from app.core.database import get_db
from app.core.auth import get_current_operator_dependency
from app.core.config import SMTP_FROM_EMAIL, SMTP_FROM_NAME
from app.models.form import Form
from app.models.report_run import ReportRun
from app.models.report_schedule import (
    ReportSchedule,
    DEFAULT_MESSAGE,
    DEFAULT_SUBJECT,
    DEFAULT_TIME_OF_DAY,
)
from app.services.email import parse_recipients
from app.services.reports.recurrence import (
    SCHEDULE_TYPES,
    normalize_repeat_every,
    parse_time_of_day,
)
from app.services.reports.runner import ReportRunner, RunInProgressError
from app.services.scheduler.scheduler_service import (
    add_schedule_job,
    get_scheduler,
    remove_schedule_job,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_schedule_scheduler() -> BaseScheduler:
    """Dependency returning the scheduler that holds schedule timers."""
    return get_scheduler()


def get_report_runner(
    db: Session = Depends(get_db),
    scheduler: BaseScheduler = Depends(get_schedule_scheduler)
) -> ReportRunner:
    """Dependency building a runner bound to the request session."""
    def reschedule(schedule: ReportSchedule, now: Optional[datetime] = None) -> Optional[datetime]:
        return add_schedule_job(schedule, now=now, scheduler=scheduler)

    return ReportRunner(db, reschedule=reschedule)


class ScheduleCreate(BaseModel):
    """Request model for creating a report schedule."""
    title: str = ""
    form_id: Optional[int] = None
    schedule_type: Optional[str] = "daily"  # 'daily', 'weekly', 'monthly'
    repeat_every: Optional[int] = 1
    time_of_day: Optional[str] = DEFAULT_TIME_OF_DAY  # HH:MM, local time
    weekday: Optional[int] = Field(default=None, ge=0, le=6)  # 0=Sunday, weekly only
    fields: List[str] = []
    recipients: List[str] = []
    from_name: Optional[str] = None
    from_email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None
    is_active: bool = True


class ScheduleUpdate(BaseModel):
    """Request model for updating a report schedule."""
    title: Optional[str] = None
    form_id: Optional[int] = None
    schedule_type: Optional[str] = None
    repeat_every: Optional[int] = None
    time_of_day: Optional[str] = None
    weekday: Optional[int] = Field(default=None, ge=0, le=6)
    fields: Optional[List[str]] = None
    recipients: Optional[List[str]] = None
    from_name: Optional[str] = None
    from_email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None
    is_active: Optional[bool] = None


class ScheduleResponse(BaseModel):
    """Response model for a report schedule."""
    id: int
    title: str
    form_id: Optional[int]
    form_title: Optional[str]
    schedule_type: Optional[str]
    repeat_every: int
    time_of_day: Optional[str]
    weekday: Optional[int]
    fields: List[str]
    recipients: List[str]
    from_name: Optional[str]
    from_email: Optional[str]
    subject: Optional[str]
    message: Optional[str]
    is_active: bool
    last_run_at: Optional[datetime]
    next_run_at: Optional[datetime]
    running_since: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class RunResponse(BaseModel):
    """Response model for a report run."""
    id: int
    schedule_id: int
    trigger_type: str
    status: str
    record_count: int
    attachment_name: Optional[str]
    error: Optional[str]
    started_at: datetime
    finished_at: Optional[datetime]


class RunNowResponse(BaseModel):
    """Response model for a manual trigger."""
    success: bool
    run_id: Optional[int]
    record_count: int
    dispatched: bool
    completed_at: datetime
    last_run_at: Optional[datetime]
    next_run_at: Optional[datetime]


def _validate_cadence(schedule_type: Optional[str], time_of_day: Optional[str]):
    if schedule_type is not None and schedule_type not in SCHEDULE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid schedule_type: {schedule_type}"
        )
    if time_of_day and parse_time_of_day(time_of_day) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="time_of_day must be in HH:MM format"
        )


def _get_form(db: Session, form_id: Optional[int]) -> Optional[Form]:
    if form_id is None:
        return None
    form = db.query(Form).filter(Form.id == form_id).first()
    if not form:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Form not found"
        )
    return form


def _get_schedule(db: Session, schedule_id: int) -> ReportSchedule:
    schedule = db.query(ReportSchedule).filter(ReportSchedule.id == schedule_id).first()
    if not schedule:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Schedule not found"
        )
    return schedule


def _to_response(schedule: ReportSchedule) -> ScheduleResponse:
    return ScheduleResponse(
        id=schedule.id,
        title=schedule.title or "",
        form_id=schedule.form_id,
        form_title=schedule.form.title if schedule.form else None,
        schedule_type=schedule.schedule_type,
        repeat_every=normalize_repeat_every(schedule.repeat_every),
        time_of_day=schedule.time_of_day,
        weekday=schedule.weekday,
        fields=list(schedule.fields or []),
        recipients=list(schedule.recipients or []),
        from_name=schedule.from_name,
        from_email=schedule.from_email,
        subject=schedule.subject,
        message=schedule.message,
        is_active=schedule.is_active,
        last_run_at=schedule.last_run_at,
        next_run_at=schedule.next_run_at,
        running_since=schedule.running_since,
        created_at=schedule.created_at,
        updated_at=schedule.updated_at
    )


@router.get("", response_model=List[ScheduleResponse])
async def list_schedules(
    db: Session = Depends(get_db),
    operator: dict = Depends(get_current_operator_dependency)
):
    """List all report schedules."""
    schedules = db.query(ReportSchedule).order_by(ReportSchedule.id.desc()).all()
    return [_to_response(schedule) for schedule in schedules]


@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    request: ScheduleCreate,
    db: Session = Depends(get_db),
    scheduler: BaseScheduler = Depends(get_schedule_scheduler),
    operator: dict = Depends(get_current_operator_dependency)
):
    """Create a report schedule and register its timer."""
    _validate_cadence(request.schedule_type, request.time_of_day)
    form = _get_form(db, request.form_id)

    schedule = ReportSchedule(
        title=request.title or (form.title if form else ""),
        form_id=request.form_id,
        schedule_type=request.schedule_type,
        repeat_every=normalize_repeat_every(request.repeat_every),
        time_of_day=request.time_of_day or None,
        weekday=request.weekday if request.schedule_type == 'weekly' else None,
        fields=[str(fid) for fid in request.fields],
        recipients=parse_recipients(request.recipients),
        from_name=request.from_name if request.from_name is not None else SMTP_FROM_NAME,
        from_email=request.from_email if request.from_email is not None else SMTP_FROM_EMAIL,
        subject=request.subject if request.subject is not None else DEFAULT_SUBJECT,
        message=request.message if request.message is not None else DEFAULT_MESSAGE,
        is_active=request.is_active
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)

    add_schedule_job(schedule, scheduler=scheduler)
    db.commit()
    db.refresh(schedule)

    logger.info(f"Created report schedule {schedule.id} ({schedule.schedule_type} at {schedule.time_of_day})")
    return _to_response(schedule)


@router.get("/{schedule_id}", response_model=ScheduleResponse)
async def get_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    operator: dict = Depends(get_current_operator_dependency)
):
    """Get a report schedule by ID."""
    return _to_response(_get_schedule(db, schedule_id))


@router.put("/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: int,
    request: ScheduleUpdate,
    db: Session = Depends(get_db),
    scheduler: BaseScheduler = Depends(get_schedule_scheduler),
    operator: dict = Depends(get_current_operator_dependency)
):
    """Update a report schedule and re-register its timer."""
    schedule = _get_schedule(db, schedule_id)
    updates = request.dict(exclude_unset=True)

    _validate_cadence(updates.get('schedule_type'), updates.get('time_of_day'))
    if 'form_id' in updates:
        _get_form(db, updates['form_id'])

    for key in ('title', 'form_id', 'schedule_type', 'time_of_day', 'weekday',
                'from_name', 'from_email', 'subject', 'message', 'is_active'):
        if key in updates:
            setattr(schedule, key, updates[key])
    if 'repeat_every' in updates:
        schedule.repeat_every = normalize_repeat_every(updates['repeat_every'])
    if 'fields' in updates:
        schedule.fields = [str(fid) for fid in updates['fields'] or []]
    if 'recipients' in updates:
        schedule.recipients = parse_recipients(updates['recipients'])
    if schedule.schedule_type != 'weekly':
        schedule.weekday = None

    db.commit()
    db.refresh(schedule)

    add_schedule_job(schedule, scheduler=scheduler)
    db.commit()
    db.refresh(schedule)

    return _to_response(schedule)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    scheduler: BaseScheduler = Depends(get_schedule_scheduler),
    operator: dict = Depends(get_current_operator_dependency)
):
    """Delete a report schedule and cancel its timer."""
    schedule = _get_schedule(db, schedule_id)

    remove_schedule_job(schedule.id, scheduler=scheduler)

    db.delete(schedule)
    db.commit()

    return None


@router.post("/{schedule_id}/run", response_model=RunNowResponse)
def run_schedule_now(
    schedule_id: int,
    db: Session = Depends(get_db),
    runner: ReportRunner = Depends(get_report_runner),
    operator: dict = Depends(get_current_operator_dependency)
):
    """Run a report schedule now and re-arm its timer."""
    schedule = _get_schedule(db, schedule_id)
    if not schedule.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Schedule is not active"
        )

    try:
        outcome = runner.trigger_run_now(schedule_id)
    except RunInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    if outcome is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Schedule not found"
        )

    db.refresh(schedule)
    logger.info(f"Manual run of schedule {schedule_id} by {operator.get('email')}: success={outcome.success}")
    return RunNowResponse(
        success=outcome.success,
        run_id=outcome.run_id,
        record_count=outcome.record_count,
        dispatched=outcome.dispatched,
        completed_at=outcome.completed_at,
        last_run_at=schedule.last_run_at,
        next_run_at=schedule.next_run_at
    )


@router.get("/{schedule_id}/runs", response_model=List[RunResponse])
async def list_schedule_runs(
    schedule_id: int,
    limit: int = 50,
    db: Session = Depends(get_db),
    operator: dict = Depends(get_current_operator_dependency)
):
    """List recent runs of a report schedule, newest first."""
    _get_schedule(db, schedule_id)
    runs = db.query(ReportRun).filter(
        ReportRun.schedule_id == schedule_id
    ).order_by(ReportRun.started_at.desc(), ReportRun.id.desc()).limit(max(1, min(limit, 500))).all()

    return [
        RunResponse(
            id=run.id,
            schedule_id=run.schedule_id,
            trigger_type=run.trigger_type.value,
            status=run.status.value,
            record_count=run.record_count or 0,
            attachment_name=run.attachment_name,
            error=run.error,
            started_at=run.started_at,
            finished_at=run.finished_at
        )
        for run in runs
    ]
