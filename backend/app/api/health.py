"""
Health check endpoint.
"""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.services.scheduler.scheduler_service import get_scheduler, JOB_ID_PREFIX

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health(db: Session = Depends(get_db)):
    """Report database reachability and scheduler state."""
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except Exception as e:
        logger.warning(f"Health check: database unreachable: {e}")
        database_ok = False

    scheduler = get_scheduler()
    jobs = [job for job in scheduler.get_jobs() if job.id.startswith(JOB_ID_PREFIX)]
    return {
        "status": "ok" if database_ok else "degraded",
        "database": database_ok,
        "scheduler_running": scheduler.running,
        "scheduled_reports": len(jobs),
    }
