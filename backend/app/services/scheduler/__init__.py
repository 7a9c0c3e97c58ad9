"""
Scheduler service for managing report schedule timers.
"""
from app.services.scheduler.scheduler_service import (
    get_scheduler,
    start_scheduler,
    stop_scheduler,
    add_schedule_job,
    remove_schedule_job,
    reload_schedule,
    load_all_schedules,
    reconcile_schedules,
    calculate_next_run,
    execute_schedule,
    get_registered_fire_time,
    job_id_for,
)

__all__ = [
    "get_scheduler",
    "start_scheduler",
    "stop_scheduler",
    "add_schedule_job",
    "remove_schedule_job",
    "reload_schedule",
    "load_all_schedules",
    "reconcile_schedules",
    "calculate_next_run",
    "execute_schedule",
    "get_registered_fire_time",
    "job_id_for",
]
