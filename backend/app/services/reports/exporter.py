"""
Incremental CSV export of form entries.

Only entries created at or after the schedule watermark (last_run_at) are
exported; the first run of a schedule exports everything.
"""
import csv
import logging
import re
import secrets
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Union

from app.services.records.base import RecordSource
from app.services.reports.fields import FieldSpec, resolve_label

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Header and data rows of one export."""
    header: List[str]
    rows: List[List[str]] = field(default_factory=list)
    record_count: int = 0
    source_title: str = ""


def selected_field_ids(schedule: Any) -> List[str]:
    """Ordered field ids of a schedule (blank ids dropped, duplicates kept)."""
    raw = getattr(schedule, 'fields', None) or []
    if isinstance(raw, str):
        raw = raw.split(',')
    return [str(fid).strip() for fid in raw if str(fid).strip()]


def _cell(value: Any) -> str:
    if value is None:
        return ''
    return str(value)


def export_entries(schedule: Any, source: RecordSource) -> ExportResult:
    """Export the entries of a schedule's form created since its watermark.

    Source failures never abort the export: an unreadable schema leaves the
    header labels unresolved and unreadable entries count as zero records.

    Args:
        schedule: ReportSchedule (form_id, fields, last_run_at)
        source: Record source to read from

    Returns:
        ExportResult with one header label and one value per selected field
    """
    field_ids = selected_field_ids(schedule)
    source_id = getattr(schedule, 'form_id', None)
    watermark = getattr(schedule, 'last_run_at', None)

    title = ""
    schema: List[FieldSpec] = []
    records = []
    if source_id is not None:
        try:
            title, schema = source.get_schema(source_id)
        except Exception as e:
            logger.warning(f"Could not load schema for source {source_id}: {e}")
        try:
            records = source.list_records(source_id, since=watermark)
        except Exception as e:
            logger.error(f"Could not list records for source {source_id}: {e}", exc_info=True)
            records = []

    header = [resolve_label(fid, schema) for fid in field_ids]
    rows = [[_cell(record.get(fid)) for fid in field_ids] for record in records]

    logger.info(
        f"Exported {len(rows)} records from source {source_id} "
        f"(since={watermark.isoformat() if watermark else 'beginning'})"
    )
    return ExportResult(header=header, rows=rows, record_count=len(rows), source_title=title or "")


def write_csv(result: ExportResult, path: Union[str, Path]) -> Path:
    """Write an export as UTF-8 CSV, header first.

    Raises:
        OSError: If the file cannot be written
    """
    path = Path(path)
    with open(path, 'w', newline='', encoding='utf-8') as fp:
        writer = csv.writer(fp)
        writer.writerow(result.header)
        writer.writerows(result.rows)
    return path


def _slug(title: str) -> str:
    slug = re.sub(r'[\s/\\]', '-', title.strip()).upper()
    return slug or 'FORM'


def build_export_filename(schedule: Any, source_title: str, now: Optional[datetime] = None) -> str:
    """File name unique per run: schedule, form, cadence, microsecond timestamp and a random token."""
    if now is None:
        now = datetime.now()
    schedule_type = getattr(schedule, 'schedule_type', None) or 'manual'
    stamp = now.strftime('%Y%m%d-%H%M%S%f')
    token = secrets.token_hex(3)
    return f"report-{schedule.id}-{_slug(source_title)}-{schedule_type}-{stamp}-{token}.csv"


def materialize_export(
    result: ExportResult,
    filename: str,
    primary_dir: Union[str, Path],
    fallback_dir: Optional[Union[str, Path]] = None
) -> Optional[Path]:
    """Write the export to the primary directory, falling back to the temp dir.

    Args:
        result: Export to write
        filename: File name (no directories)
        primary_dir: Preferred export directory, created if missing
        fallback_dir: Secondary directory (defaults to the system temp dir)

    Returns:
        Path of the written file, or None if neither location was writable
    """
    if fallback_dir is None:
        fallback_dir = tempfile.gettempdir()

    for directory in (primary_dir, fallback_dir):
        path = Path(directory) / filename
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            write_csv(result, path)
            logger.debug(f"Export written to {path}")
            return path
        except OSError as e:
            logger.warning(f"Could not write export to {path}: {e}")
            if path.is_file():
                path.unlink()

    logger.error(f"Export {filename} could not be written; continuing without attachment")
    return None
