from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from timetiles.core.errors import SchemaCreationError
from timetiles.core.logging import logger
from timetiles.crud.datasets import get_dataset, count_events
from timetiles.db.models.schema_version import SchemaVersion
from timetiles.services.etl.field_stats import SchemaSummary, summary_to_dict


def get_next_version_number(db: Session, dataset_id: int) -> int:
    current = db.execute(
        select(func.max(SchemaVersion.version_number)).where(SchemaVersion.dataset_id == dataset_id)
    ).scalar()
    return (current or 0) + 1


def get_latest_version(db: Session, dataset_id: int) -> SchemaVersion | None:
    return (
        db.query(SchemaVersion)
        .filter(SchemaVersion.dataset_id == dataset_id)
        .order_by(SchemaVersion.version_number.desc())
        .first()
    )


def create_schema_version(
    db: Session,
    dataset_id: int,
    schema: dict,
    field_metadata: SchemaSummary,
    field_mappings: dict | None = None,
    auto_approved: bool = False,
    approved_by_id: int | None = None,
    import_sources: list[dict] | None = None,
) -> SchemaVersion:
    """Append the next version for a dataset. Versions are never edited once written."""
    if get_dataset(db, dataset_id) is None:
        raise SchemaCreationError(f"Dataset not found: {dataset_id}")

    version = SchemaVersion(
        dataset_id=dataset_id,
        version_number=get_next_version_number(db, dataset_id),
        schema=schema,
        field_metadata=summary_to_dict(field_metadata),
        field_mappings=field_mappings,
        auto_approved=auto_approved,
        approved_by_id=None if auto_approved else approved_by_id,
        import_sources=import_sources or [],
        event_count_at_creation=count_events(db, dataset_id),
    )
    try:
        db.add(version)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise SchemaCreationError(f"Failed to create schema version for dataset {dataset_id}: {e}") from e
    db.refresh(version)

    logger.info(
        "schema_version_created",
        dataset_id=dataset_id,
        version_number=version.version_number,
        auto_approved=auto_approved,
    )
    return version
