"""
Report run model (history of schedule executions).
"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum
from app.core.database import Base


class RunStatus(str, enum.Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TriggerType(str, enum.Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class ReportRun(Base):
    __tablename__ = "report_runs"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("report_schedules.id"), nullable=False, index=True)
    trigger_type = Column(SQLEnum(TriggerType, values_callable=lambda x: [e.value for e in x]), nullable=False)
    status = Column(SQLEnum(RunStatus, values_callable=lambda x: [e.value for e in x]), default=RunStatus.RUNNING, nullable=False)
    record_count = Column(Integer, nullable=False, default=0)
    attachment_name = Column(String(255), nullable=True)  # file is deleted after dispatch, name kept for audit
    error = Column(Text, nullable=True)
    started_at = Column(DateTime, nullable=False)
    finished_at = Column(DateTime, nullable=True)

    schedule = relationship("ReportSchedule", back_populates="runs")
