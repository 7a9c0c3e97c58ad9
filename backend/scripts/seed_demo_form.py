"""
Script to create a demo form with a few entries and a daily report schedule.
Run this after migrations to try the exporter end to end.
"""
import argparse
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from app.core.database import SessionLocal
from app.models.form import Form
from app.models.entry import Entry
from app.models.report_schedule import ReportSchedule, DEFAULT_MESSAGE, DEFAULT_SUBJECT
from app.services.reports.fields import SimpleField, CompositeField, SubInput, field_spec_to_dict

DEMO_FIELDS = [
    CompositeField(id="1", label="Name", inputs=[SubInput(id="1.3", label="First"), SubInput(id="1.6", label="Last")]),
    SimpleField(id="2", label="Email"),
    SimpleField(id="3", label="Message"),
]


def seed(recipient: str, time_of_day: str):
    db = SessionLocal()
    try:
        form = Form(title="Contact Us", fields=[field_spec_to_dict(spec) for spec in DEMO_FIELDS])
        db.add(form)
        db.flush()

        now = datetime.now()
        samples = [
            ("Ada", "Lovelace", "ada@example.com", "Hello, world"),
            ("Alan", "Turing", "alan@example.com", "Is this thing on?"),
            ("Grace", "Hopper", "grace@example.com", "Found a bug, \"literally\""),
        ]
        for offset, (first, last, email, message) in enumerate(samples):
            db.add(Entry(
                form_id=form.id,
                created_at=now - timedelta(hours=offset + 1),
                ip="127.0.0.1",
                source_url="https://example.com/contact",
                values={"1.3": first, "1.6": last, "2": email, "3": message},
            ))

        schedule = ReportSchedule(
            title="Daily contact report",
            form_id=form.id,
            schedule_type="daily",
            repeat_every=1,
            time_of_day=time_of_day,
            fields=["id", "date_created", "1.3", "1.6", "2", "3"],
            recipients=[recipient],
            subject=DEFAULT_SUBJECT,
            message=DEFAULT_MESSAGE,
            is_active=True,
        )
        db.add(schedule)
        db.commit()
        print(f"✅ Created form #{form.id} with {len(samples)} entries and schedule #{schedule.id}")
    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding demo data: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Seed a demo form and report schedule')
    parser.add_argument('--to', default='reports@example.com', help='Report recipient')
    parser.add_argument('--time', default='14:30', help='Daily send time (HH:MM)')
    args = parser.parse_args()
    seed(args.to, args.time)
