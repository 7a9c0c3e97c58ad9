"""
Database models.
"""
from app.models.form import Form
from app.models.entry import Entry
from app.models.report_schedule import ReportSchedule
from app.models.report_run import ReportRun

__all__ = [
    "Form",
    "Entry",
    "ReportSchedule",
    "ReportRun",
]
