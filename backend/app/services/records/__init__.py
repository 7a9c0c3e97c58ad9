"""
Record sources for entry exports.
"""
from app.services.records.base import Record, RecordSource
from app.services.records.database_source import DatabaseRecordSource, entry_to_record

__all__ = [
    "Record",
    "RecordSource",
    "DatabaseRecordSource",
    "entry_to_record",
]
