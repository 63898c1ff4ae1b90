"""init

Revision ID: 0001_init
Revises: 
Create Date: 2026-03-02

"""
from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=256), nullable=False),
        sa.Column("full_name", sa.String(length=256), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "user_usage",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("usage_date", sa.Date(), nullable=False),
        sa.Column("url_fetches_today", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("file_uploads_today", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("import_jobs_today", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_user_usage_user_id", "user_usage", ["user_id"], unique=True)

    op.create_table(
        "catalog",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "dataset",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("catalog_id", sa.Integer(), sa.ForeignKey("catalog.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("schema_config", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("catalog_id", "name", name="uq_dataset_catalog_name"),
    )
    op.create_index("ix_dataset_catalog_id", "dataset", ["catalog_id"])

    op.create_table(
        "scheduled_import",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("catalog_id", sa.Integer(), sa.ForeignKey("catalog.id", ondelete="SET NULL"), nullable=True),
        sa.Column("dataset_id", sa.Integer(), sa.ForeignKey("dataset.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("source_url", sa.String(length=2048), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("auth_config", sa.JSON(), nullable=False),
        sa.Column("advanced_options", sa.JSON(), nullable=False),
        sa.Column("retry_config", sa.JSON(), nullable=False),
        sa.Column("statistics", sa.JSON(), nullable=False),
        sa.Column("execution_history", sa.JSON(), nullable=False),
        sa.Column("last_run", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_status", sa.String(length=32), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("current_retries", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "import_file",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("catalog_id", sa.Integer(), sa.ForeignKey("catalog.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "scheduled_import_id",
            sa.Integer(),
            sa.ForeignKey("scheduled_import.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("target_dataset_id", sa.Integer(), sa.ForeignKey("dataset.id", ondelete="SET NULL"), nullable=True),
        sa.Column("original_name", sa.String(length=512), nullable=False),
        sa.Column("filename", sa.String(length=512), nullable=False),
        sa.Column("file_path", sa.String(length=1024), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("mime_type", sa.String(length=128), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("source_url", sa.String(length=2048), nullable=True),
        sa.Column("auth_type", sa.String(length=32), nullable=True),
        sa.Column("is_duplicate", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processing_options", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    # not unique: concurrent identical submissions may both pass the dedupe read
    op.create_index("ix_import_file_catalog_hash", "import_file", ["catalog_id", "content_hash"])

    op.create_table(
        "schema_version",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dataset_id", sa.Integer(), sa.ForeignKey("dataset.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("schema", sa.JSON(), nullable=False),
        sa.Column("field_metadata", sa.JSON(), nullable=False),
        sa.Column("field_mappings", sa.JSON(), nullable=True),
        sa.Column("auto_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("approved_by_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("import_sources", sa.JSON(), nullable=False),
        sa.Column("event_count_at_creation", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("dataset_id", "version_number", name="uq_schema_version_dataset_number"),
    )
    op.create_index("ix_schema_version_dataset_id", "schema_version", ["dataset_id"])

    op.create_table(
        "import_job",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("import_file_id", sa.Integer(), sa.ForeignKey("import_file.id", ondelete="CASCADE"), nullable=False),
        sa.Column("dataset_id", sa.Integer(), sa.ForeignKey("dataset.id", ondelete="CASCADE"), nullable=False),
        sa.Column("stage", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("rows_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rows_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duplicate_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("batches_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("events_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duplicates", sa.JSON(), nullable=False),
        sa.Column("progress", sa.JSON(), nullable=False),
        sa.Column("schema", sa.JSON(), nullable=False),
        sa.Column("detection", sa.JSON(), nullable=False),
        sa.Column("schema_validation", sa.JSON(), nullable=False),
        sa.Column("geocoding", sa.JSON(), nullable=False),
        sa.Column("error_log", sa.JSON(), nullable=True),
        sa.Column(
            "dataset_schema_version_id",
            sa.Integer(),
            sa.ForeignKey("schema_version.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_import_job_import_file_id", "import_job", ["import_file_id"])
    op.create_index("ix_import_job_dataset_id", "import_job", ["dataset_id"])
    op.create_index("ix_import_job_stage", "import_job", ["stage"])

    op.create_table(
        "import_row",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("import_job_id", sa.Integer(), sa.ForeignKey("import_job.id", ondelete="CASCADE"), nullable=False),
        sa.Column("batch_number", sa.Integer(), nullable=False),
        sa.Column("row_number", sa.Integer(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("unique_id", sa.String(length=64), nullable=False),
        sa.Column("is_duplicate", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("duplicate_kind", sa.String(length=16), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("geocoded", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_import_row_import_job_id", "import_row", ["import_job_id"])
    op.create_index("ix_import_row_unique_id", "import_row", ["unique_id"])
    op.create_index("ix_import_row_job_row", "import_row", ["import_job_id", "row_number"])

    op.create_table(
        "event",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dataset_id", sa.Integer(), sa.ForeignKey("dataset.id", ondelete="CASCADE"), nullable=False),
        sa.Column("import_job_id", sa.Integer(), sa.ForeignKey("import_job.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "schema_version_id",
            sa.Integer(),
            sa.ForeignKey("schema_version.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("unique_id", sa.String(length=64), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("title", sa.String(length=512), nullable=True),
        sa.Column("event_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_event_dataset_id", "event", ["dataset_id"])
    op.create_index("ix_event_dataset_unique", "event", ["dataset_id", "unique_id"])


def downgrade():
    op.drop_table("event")
    op.drop_table("import_row")
    op.drop_table("import_job")
    op.drop_table("schema_version")
    op.drop_table("import_file")
    op.drop_table("scheduled_import")
    op.drop_table("dataset")
    op.drop_table("catalog")
    op.drop_table("user_usage")
    op.drop_table("user")
