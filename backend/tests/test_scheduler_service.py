"""
Tests for schedule timer registration.

The scheduler fixture is started paused, so jobs are registered but never fire.
"""
from datetime import datetime, timedelta

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from app.models.report_run import ReportRun, RunStatus, TriggerType
from app.services import email as email_service
from app.services.reports import runner as runner_module
from app.services.scheduler import scheduler_service
from app.services.scheduler.scheduler_service import (
    RECONCILE_JOB_ID,
    add_schedule_job,
    execute_schedule,
    get_registered_fire_time,
    job_id_for,
    load_all_schedules,
    reconcile_schedules,
    reload_schedule,
    remove_schedule_job,
    start_scheduler,
    stop_scheduler,
)

NOW = datetime(2024, 1, 1, 15, 0)


def test_registers_job_at_next_fire_time(make_schedule, scheduler):
    schedule = make_schedule()

    fire_time = add_schedule_job(schedule, now=NOW, scheduler=scheduler)

    assert fire_time == datetime(2024, 1, 2, 14, 30)
    assert schedule.next_run_at == fire_time
    assert get_registered_fire_time(schedule.id, scheduler=scheduler) == fire_time

    job = scheduler.get_job(job_id_for(schedule.id))
    assert job.args == (schedule.id,)
    assert job.func is execute_schedule
    assert job.max_instances == 1
    assert job.coalesce


@pytest.mark.parametrize("schedule_type,repeat_every,interval", [
    ("daily", 2, timedelta(days=2)),
    ("weekly", 3, timedelta(weeks=3)),
    ("monthly", 2, timedelta(days=60)),
])
def test_job_repeats_at_schedule_interval(make_schedule, scheduler, schedule_type, repeat_every, interval):
    schedule = make_schedule(schedule_type=schedule_type, repeat_every=repeat_every)

    add_schedule_job(schedule, now=NOW, scheduler=scheduler)

    assert scheduler.get_job(job_id_for(schedule.id)).trigger.interval == interval


def test_reregistering_is_idempotent(make_schedule, scheduler):
    schedule = make_schedule(schedule_type="weekly", weekday=3)

    first = add_schedule_job(schedule, now=NOW, scheduler=scheduler)
    second = add_schedule_job(schedule, now=NOW, scheduler=scheduler)

    assert first == second == datetime(2024, 1, 3, 14, 30)
    assert len(scheduler.get_jobs()) == 1
    assert get_registered_fire_time(schedule.id, scheduler=scheduler) == first


def test_cadence_change_replaces_job(make_schedule, scheduler):
    schedule = make_schedule()
    add_schedule_job(schedule, now=NOW, scheduler=scheduler)

    schedule.time_of_day = "18:00"
    fire_time = add_schedule_job(schedule, now=NOW, scheduler=scheduler)

    assert fire_time == datetime(2024, 1, 1, 18, 0)
    assert len(scheduler.get_jobs()) == 1
    assert get_registered_fire_time(schedule.id, scheduler=scheduler) == fire_time


def test_inactive_schedule_loses_its_job(make_schedule, scheduler):
    schedule = make_schedule()
    add_schedule_job(schedule, now=NOW, scheduler=scheduler)

    schedule.is_active = False
    assert add_schedule_job(schedule, now=NOW, scheduler=scheduler) is None

    assert schedule.next_run_at is None
    assert scheduler.get_jobs() == []


@pytest.mark.parametrize("overrides", [
    {"schedule_type": None},
    {"time_of_day": None},
    {"time_of_day": "7pm"},
])
def test_unconfigured_schedule_gets_no_job(make_schedule, scheduler, overrides):
    schedule = make_schedule(**overrides)

    assert add_schedule_job(schedule, now=NOW, scheduler=scheduler) is None
    assert schedule.next_run_at is None
    assert scheduler.get_jobs() == []


def test_remove_schedule_job(make_schedule, scheduler):
    schedule = make_schedule()
    add_schedule_job(schedule, now=NOW, scheduler=scheduler)

    assert remove_schedule_job(schedule.id, scheduler=scheduler) is True
    assert remove_schedule_job(schedule.id, scheduler=scheduler) is False
    assert get_registered_fire_time(schedule.id, scheduler=scheduler) is None


def test_load_all_schedules_registers_active_configured_ones(db, make_schedule, scheduler):
    daily = make_schedule(title="daily")
    weekly = make_schedule(title="weekly", schedule_type="weekly", weekday=5)
    make_schedule(title="inactive", is_active=False)
    unconfigured = make_schedule(title="unconfigured", time_of_day=None)

    assert load_all_schedules(db=db, scheduler=scheduler) == 2

    assert {job.id for job in scheduler.get_jobs()} == {job_id_for(daily.id), job_id_for(weekly.id)}
    db.refresh(daily)
    db.refresh(unconfigured)
    assert daily.next_run_at is not None
    assert unconfigured.next_run_at is None


def test_reload_schedule(db, make_schedule, scheduler):
    schedule = make_schedule()

    assert reload_schedule(schedule.id, db=db, scheduler=scheduler) is not None
    assert scheduler.get_job(job_id_for(schedule.id)) is not None

    db.delete(schedule)
    db.commit()
    assert reload_schedule(schedule.id, db=db, scheduler=scheduler) is None
    assert scheduler.get_jobs() == []


def test_idle_scheduler_only_stores_next_run(make_schedule):
    idle = BackgroundScheduler()
    schedule = make_schedule()

    fire_time = add_schedule_job(schedule, now=NOW, scheduler=idle)

    assert fire_time == datetime(2024, 1, 2, 14, 30)
    assert schedule.next_run_at == fire_time
    assert idle.get_jobs() == []


def test_reconcile_registers_schedules_saved_elsewhere(db, make_schedule, scheduler):
    schedule = make_schedule()
    add_schedule_job(schedule, now=NOW, scheduler=BackgroundScheduler())
    db.commit()

    assert reconcile_schedules(db=db, scheduler=scheduler, now=NOW) == 1
    assert get_registered_fire_time(schedule.id, scheduler=scheduler) == datetime(2024, 1, 2, 14, 30)

    assert reconcile_schedules(db=db, scheduler=scheduler, now=NOW) == 0


def test_reconcile_follows_cadence_change(db, make_schedule, scheduler):
    schedule = make_schedule()
    add_schedule_job(schedule, now=NOW, scheduler=scheduler)
    db.commit()

    schedule.repeat_every = 2
    add_schedule_job(schedule, now=NOW, scheduler=BackgroundScheduler())
    db.commit()

    assert reconcile_schedules(db=db, scheduler=scheduler, now=NOW) == 1
    assert scheduler.get_job(job_id_for(schedule.id)).trigger.interval == timedelta(days=2)
    assert get_registered_fire_time(schedule.id, scheduler=scheduler) == schedule.next_run_at


def test_reconcile_drops_jobs_of_deleted_and_inactive_schedules(db, make_schedule, scheduler):
    gone = make_schedule(title="gone")
    paused = make_schedule(title="paused")
    kept = make_schedule(title="kept")
    for schedule in (gone, paused, kept):
        add_schedule_job(schedule, now=NOW, scheduler=scheduler)
    db.commit()

    db.delete(gone)
    paused.is_active = False
    db.commit()

    assert reconcile_schedules(db=db, scheduler=scheduler, now=NOW) == 2
    assert [job.id for job in scheduler.get_jobs()] == [job_id_for(kept.id)]


def test_reconcile_leaves_running_schedules_alone(db, make_schedule, scheduler):
    make_schedule(running_since=NOW, next_run_at=datetime(2024, 1, 2, 14, 30))

    assert reconcile_schedules(db=db, scheduler=scheduler, now=NOW) == 0
    assert scheduler.get_jobs() == []


def test_start_scheduler_keeps_reconciling(monkeypatch, session_factory):
    monkeypatch.setattr(scheduler_service, "SessionLocal", session_factory)
    monkeypatch.setattr(scheduler_service, "_scheduler", BackgroundScheduler())

    start_scheduler()
    try:
        job = scheduler_service.get_scheduler().get_job(RECONCILE_JOB_ID)
        assert job is not None
        assert job.func is reconcile_schedules
    finally:
        stop_scheduler()


@pytest.fixture()
def timer_environment(monkeypatch, session_factory, scheduler, tmp_path):
    """Route the timer callback to the test database, scheduler and directories."""
    monkeypatch.setattr(scheduler_service, "SessionLocal", session_factory)
    monkeypatch.setattr(scheduler_service, "_scheduler", scheduler)
    monkeypatch.setattr(runner_module, "EXPORT_DIR", str(tmp_path / "exports"))
    monkeypatch.setattr(email_service, "SMTP_HOST", None)
    return scheduler


def test_timer_fire_runs_and_rearms(db, make_schedule, timer_environment):
    schedule = make_schedule()

    execute_schedule(schedule.id)

    db.expire_all()
    run = db.query(ReportRun).one()
    assert run.trigger_type == TriggerType.SCHEDULED
    # No SMTP host configured, so dispatch fails
    assert run.status == RunStatus.FAILED
    refreshed = db.get(type(schedule), schedule.id)
    assert refreshed.last_run_at is not None
    assert refreshed.next_run_at is not None
    assert get_registered_fire_time(schedule.id, scheduler=timer_environment) == refreshed.next_run_at


def test_timer_fire_skipped_while_running(db, make_schedule, timer_environment):
    schedule = make_schedule(running_since=datetime.now())

    execute_schedule(schedule.id)

    db.expire_all()
    assert db.query(ReportRun).count() == 0
    assert timer_environment.get_jobs() == []


def test_timer_fire_for_deleted_schedule_is_harmless(db, timer_environment):
    execute_schedule(4242)
    assert db.query(ReportRun).count() == 0
