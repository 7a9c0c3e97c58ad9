"""add_running_since_to_report_schedules

Revision ID: 8f2b5c61d7e3
Revises: 3c9e71d0b2a4
Create Date: 2026-10-20 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '8f2b5c61d7e3'
down_revision = '3c9e71d0b2a4'
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table('report_schedules') as batch_op:
        batch_op.add_column(sa.Column('running_since', sa.DateTime(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table('report_schedules') as batch_op:
        batch_op.drop_column('running_since')
