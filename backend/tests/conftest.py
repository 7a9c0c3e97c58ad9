"""
Shared pytest fixtures.

Every test gets a fresh in-memory SQLite database, a scheduler that is started
paused (jobs are registered but never fire), and fakes for the record
source and the email transport.
"""
from datetime import datetime
from typing import Any, List, Optional

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.database import Base
from app.models.form import Form
from app.models.report_schedule import ReportSchedule
from app.services.records.base import RecordSource
from app.services.reports.fields import CompositeField, SimpleField, SubInput, field_spec_to_dict
from app.services.reports.runner import ReportRunner


CONTACT_SCHEMA = [
    CompositeField(id="1", label="Name", inputs=[SubInput(id="1.3", label="First"), SubInput(id="1.6", label="Last")]),
    SimpleField(id="2", label="Email"),
    SimpleField(id="3", label="Message"),
]


class FakeRecordSource(RecordSource):
    """In-memory record source; records carry their creation time under "date_created"."""

    def __init__(self, title="Contact Us", schema=None, records=None, fail_schema=False, fail_records=False):
        self.title = title
        self.schema = list(CONTACT_SCHEMA if schema is None else schema)
        self.records = list(records or [])
        self.fail_schema = fail_schema
        self.fail_records = fail_records
        self.calls: List[Any] = []

    def list_records(self, source_id, since=None):
        self.calls.append((source_id, since))
        if self.fail_records:
            raise RuntimeError("record source unavailable")
        return [r for r in self.records if since is None or r["date_created"] >= since]

    def get_schema(self, source_id):
        if self.fail_schema:
            raise LookupError(f"Form {source_id} not found")
        return self.title, self.schema


class FakeTransport:
    """Stands in for send_email; captures what would have been sent."""

    def __init__(self, result=True, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[dict] = []

    def __call__(self, to_emails, subject, text_body, from_header=None, attachments=None):
        snapshot = []
        for path in attachments or []:
            snapshot.append({
                "path": path,
                "exists": path.exists(),
                "content": path.read_text(encoding="utf-8") if path.exists() else None,
            })
        self.calls.append({
            "to": list(to_emails),
            "subject": subject,
            "body": text_body,
            "from_header": from_header,
            "attachments": snapshot,
        })
        if self.error is not None:
            raise self.error
        return self.result


class FakeClock:
    """Returns the queued instants in order, then keeps returning the last one."""

    def __init__(self, *instants: datetime):
        self.instants = list(instants)

    def __call__(self) -> datetime:
        if len(self.instants) > 1:
            return self.instants.pop(0)
        return self.instants[0]


class RescheduleRecorder:
    def __init__(self, result: Optional[datetime] = None):
        self.result = result
        self.calls: List[tuple] = []

    def __call__(self, schedule, now=None):
        self.calls.append((schedule.id, now))
        schedule.next_run_at = self.result
        return self.result


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def scheduler():
    scheduler = BackgroundScheduler()
    scheduler.start(paused=True)
    yield scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)


@pytest.fixture()
def form(db):
    form = Form(title="Contact Us", fields=[field_spec_to_dict(spec) for spec in CONTACT_SCHEMA])
    db.add(form)
    db.commit()
    db.refresh(form)
    return form


@pytest.fixture()
def make_schedule(db, form):
    def _make(**overrides) -> ReportSchedule:
        values = dict(
            title="Daily contacts",
            form_id=form.id,
            schedule_type="daily",
            repeat_every=1,
            time_of_day="14:30",
            fields=["1.3", "2"],
            recipients=["ops@example.com"],
            from_name="Reports",
            from_email="reports@example.com",
            subject="Contacts",
            message="Rows: {record_count} (total {record_count})",
            is_active=True,
        )
        values.update(overrides)
        schedule = ReportSchedule(**values)
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        return schedule
    return _make


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def reschedule():
    return RescheduleRecorder(result=datetime(2024, 1, 2, 14, 30))


@pytest.fixture()
def make_runner(db, transport, reschedule, tmp_path):
    def _make(**overrides) -> ReportRunner:
        options = dict(
            source=FakeRecordSource(),
            send=transport,
            reschedule=reschedule,
            clock=FakeClock(datetime(2024, 1, 1, 14, 30), datetime(2024, 1, 1, 14, 31)),
            export_dir=str(tmp_path / "exports"),
            fallback_dir=str(tmp_path / "fallback"),
            advance_on_failure=True,
        )
        options.update(overrides)
        return ReportRunner(db, **options)
    return _make
