"""
Record source backed by the forms/entries tables.
"""
from datetime import datetime
from typing import Any, List, Optional, Tuple
import logging
from sqlalchemy.orm import Session

from app.models.form import Form
from app.models.entry import Entry
from app.services.records.base import Record, RecordSource
from app.services.reports.fields import FieldSpec, parse_field_specs

logger = logging.getLogger(__name__)

# Entry columns exposed under their system field id
_SYSTEM_COLUMNS = (
    'ip',
    'source_url',
    'user_agent',
    'payment_status',
    'payment_date',
    'transaction_id',
    'created_by',
)


def _format_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    return value


def entry_to_record(entry: Entry) -> Record:
    """Flatten an Entry row into a field id -> value mapping."""
    record: Record = {}
    for key, value in (entry.values or {}).items():
        record[str(key)] = value
    record['id'] = entry.id
    record['date_created'] = _format_value(entry.created_at)
    for column in _SYSTEM_COLUMNS:
        record[column] = _format_value(getattr(entry, column))
    return record


class DatabaseRecordSource(RecordSource):
    """Reads forms and entries through a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def list_records(self, source_id: Any, since: Optional[datetime] = None) -> List[Record]:
        query = self.db.query(Entry).filter(Entry.form_id == int(source_id))
        if since is not None:
            query = query.filter(Entry.created_at >= since)
        entries = query.order_by(Entry.created_at.asc(), Entry.id.asc()).all()
        logger.debug(f"Loaded {len(entries)} entries for form {source_id} (since={since})")
        return [entry_to_record(entry) for entry in entries]

    def get_schema(self, source_id: Any) -> Tuple[str, List[FieldSpec]]:
        form = self.db.query(Form).filter(Form.id == int(source_id)).first()
        if not form:
            raise LookupError(f"Form {source_id} not found")
        return form.title, parse_field_specs(form.fields)
