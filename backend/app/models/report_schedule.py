"""
Report schedule model for recurring entry exports.
"""
from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, Boolean, ForeignKey, func
from sqlalchemy.orm import relationship
from app.core.database import Base

DEFAULT_TIME_OF_DAY = "14:30"
DEFAULT_SUBJECT = "Scheduled Entry Report"
DEFAULT_MESSAGE = "Please find out the attachment. Number of Records: {record_count}"


class ReportSchedule(Base):
    """Represents a recurring CSV export of form entries sent by email."""

    __tablename__ = "report_schedules"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False, default="")
    form_id = Column(Integer, ForeignKey('forms.id'), nullable=True, index=True)

    # Cadence
    # schedule_type: 'daily', 'weekly', 'monthly'
    schedule_type = Column(String(20), nullable=True)
    repeat_every = Column(Integer, nullable=False, default=1)
    time_of_day = Column(String(5), nullable=True)  # local HH:MM
    weekday = Column(Integer, nullable=True)  # 0=Sunday ... 6=Saturday, weekly only

    # Export
    fields = Column(JSON, nullable=False, default=list)  # ordered field ids, header order

    # Email
    recipients = Column(JSON, nullable=False, default=list)
    from_name = Column(String(255), nullable=True)
    from_email = Column(String(255), nullable=True)
    subject = Column(String(255), nullable=True)
    message = Column(Text, nullable=True)  # may contain {record_count}

    # Status
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Execution tracking
    last_run_at = Column(DateTime, nullable=True)  # watermark
    next_run_at = Column(DateTime, nullable=True, index=True)
    running_since = Column(DateTime, nullable=True)  # run lease, set while a run is in progress

    # Metadata
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    form = relationship("Form", foreign_keys=[form_id])
    runs = relationship("ReportRun", back_populates="schedule", cascade="all, delete-orphan")
