"""
Script to run a report schedule immediately (same path as the Run Now button).
"""
import argparse
import sys
from pathlib import Path

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from app.core.database import SessionLocal
from app.services.reports.runner import ReportRunner, RunInProgressError


def main(schedule_id: int):
    db = SessionLocal()
    try:
        print(f'📤 Running schedule #{schedule_id}...')
        try:
            outcome = ReportRunner(db).trigger_run_now(schedule_id)
        except RunInProgressError as e:
            print(f'⚠️  {e}')
            sys.exit(1)

        if outcome is None:
            print(f'❌ Schedule #{schedule_id} not found or inactive')
            sys.exit(1)

        status = '✅ Success' if outcome.success else '❌ Failed'
        print(f'{status}: {outcome.record_count} record(s), email sent: {outcome.dispatched}')
        # A running app picks up the new next_run_at when it reconciles
        print(f'🕒 Next run: {outcome.next_run_at or "not scheduled"}')
        if not outcome.success:
            sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Run a report schedule now')
    parser.add_argument('schedule_id', type=int, help='Report schedule ID')
    args = parser.parse_args()
    main(args.schedule_id)
