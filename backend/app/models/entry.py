"""
Entry model (one submitted record of a form).
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, JSON, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base


class Entry(Base):
    __tablename__ = "entries"

    id = Column(Integer, primary_key=True, index=True)
    form_id = Column(Integer, ForeignKey("forms.id"), nullable=False, index=True)
    # Local wall-clock time, compared against ReportSchedule.last_run_at
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)

    # System fields
    ip = Column(String(45), nullable=True)
    source_url = Column(String(2048), nullable=True)
    user_agent = Column(String(512), nullable=True)
    payment_status = Column(String(50), nullable=True)
    payment_date = Column(DateTime, nullable=True)
    transaction_id = Column(String(100), nullable=True)
    created_by = Column(Integer, nullable=True)

    # Submitted values keyed by field/input id ("1", "2.3", ...)
    values = Column(JSON, nullable=False, default=dict)

    form = relationship("Form", back_populates="entries")
