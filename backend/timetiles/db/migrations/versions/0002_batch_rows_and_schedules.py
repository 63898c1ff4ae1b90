"""batch rows and schedules

Revision ID: 0002_batch_rows_and_schedules
Revises: 0001_init
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_batch_rows_and_schedules"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade():
    op.drop_index("ix_import_row_job_row", table_name="import_row")
    op.create_index("uq_import_row_job_row", "import_row", ["import_job_id", "row_number"], unique=True)

    op.add_column("scheduled_import", sa.Column("frequency", sa.String(length=16), nullable=True))
    op.add_column("scheduled_import", sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=True))
    op.create_index("ix_scheduled_import_next_run_at", "scheduled_import", ["next_run_at"])


def downgrade():
    op.drop_index("ix_scheduled_import_next_run_at", table_name="scheduled_import")
    with op.batch_alter_table("scheduled_import") as batch:
        batch.drop_column("next_run_at")
        batch.drop_column("frequency")

    op.drop_index("uq_import_row_job_row", table_name="import_row")
    op.create_index("ix_import_row_job_row", "import_row", ["import_job_id", "row_number"])
