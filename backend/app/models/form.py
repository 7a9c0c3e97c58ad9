"""
Form model (record source definition).
"""
from sqlalchemy import Column, Integer, String, JSON, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class Form(Base):
    __tablename__ = "forms"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    # fields: ordered list of field definitions, e.g.
    # { "type": "simple", "id": "1", "label": "Email" }
    # { "type": "composite", "id": "2", "label": "Name",
    #   "inputs": [{ "id": "2.3", "label": "First" }, { "id": "2.6", "label": "Last" }] }
    fields = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    entries = relationship("Entry", back_populates="form", cascade="all, delete-orphan")
