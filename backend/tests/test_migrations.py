from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

MIGRATIONS = Path(__file__).resolve().parents[1] / "timetiles" / "db" / "migrations"


def test_upgrade_creates_tables(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrations.db'}"
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS))
    cfg.set_main_option("sqlalchemy.url", url)

    command.upgrade(cfg, "head")

    engine = create_engine(url)
    tables = set(inspect(engine).get_table_names())
    engine.dispose()
    assert {
        "catalog", "dataset", "user", "user_usage", "scheduled_import", "import_file",
        "import_job", "import_row", "schema_version", "event",
    } <= tables

    engine = create_engine(url)
    insp = inspect(engine)
    row_indexes = {ix["name"]: ix for ix in insp.get_indexes("import_row")}
    schedule_columns = {c["name"] for c in insp.get_columns("scheduled_import")}
    engine.dispose()
    assert row_indexes["uq_import_row_job_row"]["unique"]
    assert {"frequency", "next_run_at"} <= schedule_columns
