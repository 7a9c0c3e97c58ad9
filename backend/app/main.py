"""
FastAPI application entry point.
"""
import atexit
import logging
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api import auth, forms, health, report_schedules
from app.core.config import ENABLE_SCHEDULER
from app.services.scheduler.scheduler_service import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)

SCHEDULER_LOCK_PATH = "/tmp/report-scheduler.lock"
SCHEDULER_PID_PATH = "/tmp/report-scheduler.pid"

app = FastAPI(
    title="Scheduled Reports API",
    description="Recurring CSV exports of form entries delivered by email",
    version="0.1.0",
)

# CORS middleware (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(forms.router, prefix="/api/forms", tags=["forms"])
app.include_router(report_schedules.router, prefix="/api/report-schedules", tags=["report-schedules"])

_scheduler_lock_file = None


def _acquire_scheduler_lock() -> tuple[bool, object]:
    """
    Acquire exclusive lock for running the scheduler.
    With several uvicorn workers only one of them may own the timers.
    Returns (success, lock_file); the lock file is kept open to hold the lock.
    """
    try:
        import fcntl
    except ImportError:
        # fcntl not available (Windows)
        logger.warning("fcntl not available (Windows), every worker will run the scheduler")
        return True, None

    try:
        lock_file = open(SCHEDULER_LOCK_PATH, 'w')
    except OSError as e:
        logger.error(f"Error opening scheduler lock file: {e}")
        return False, None

    try:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        lock_file.close()
        logger.info("Scheduler lock held by another process, skipping")
        return False, None

    try:
        with open(SCHEDULER_PID_PATH, 'w') as f:
            f.write(str(os.getpid()))
    except OSError as e:
        logger.warning(f"Failed to write PID file: {e}")

    logger.info(f"Acquired scheduler lock (PID: {os.getpid()})")
    return True, lock_file


def _release_scheduler_lock(lock_file):
    """Release the scheduler lock."""
    if lock_file is None:
        return
    try:
        import fcntl
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
        lock_file.close()
    except (ImportError, OSError, ValueError) as e:
        logger.warning(f"Error releasing scheduler lock: {e}")

    try:
        os.remove(SCHEDULER_PID_PATH)
    except FileNotFoundError:
        pass
    logger.info("Released scheduler lock")


@app.on_event("startup")
async def startup_event():
    """Start the scheduler and re-register every active schedule."""
    global _scheduler_lock_file

    if not ENABLE_SCHEDULER:
        logger.info("Scheduler disabled by configuration")
        return

    lock_acquired, lock_file = _acquire_scheduler_lock()
    if not lock_acquired:
        return
    _scheduler_lock_file = lock_file
    atexit.register(_release_scheduler_lock, lock_file)

    try:
        start_scheduler()
    except Exception as e:
        logger.error(f"Could not start scheduler: {e}", exc_info=True)
        _release_scheduler_lock(lock_file)
        _scheduler_lock_file = None


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    global _scheduler_lock_file

    stop_scheduler()
    if _scheduler_lock_file is not None:
        _release_scheduler_lock(_scheduler_lock_file)
        _scheduler_lock_file = None
