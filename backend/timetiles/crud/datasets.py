from sqlalchemy import func, select
from sqlalchemy.orm import Session

from timetiles.db.models.catalog import Catalog
from timetiles.db.models.dataset import Dataset
from timetiles.db.models.event import Event


def get_catalog(db: Session, catalog_id: int) -> Catalog | None:
    return db.query(Catalog).filter(Catalog.id == catalog_id).one_or_none()


def get_dataset(db: Session, dataset_id: int) -> Dataset | None:
    return db.query(Dataset).filter(Dataset.id == dataset_id).one_or_none()


def get_or_create_dataset(db: Session, catalog_id: int, name: str) -> tuple[Dataset, bool]:
    ds = db.query(Dataset).filter(Dataset.catalog_id == catalog_id, Dataset.name == name).one_or_none()
    if ds:
        return ds, False
    ds = Dataset(catalog_id=catalog_id, name=name, schema_config={})
    db.add(ds)
    db.commit()
    db.refresh(ds)
    return ds, True


def count_events(db: Session, dataset_id: int) -> int:
    return db.execute(select(func.count(Event.id)).where(Event.dataset_id == dataset_id)).scalar_one()


def existing_event_ids(
    db: Session, dataset_id: int, unique_ids: list[str], import_job_id: int | None = None
) -> set[str]:
    if not unique_ids:
        return set()
    stmt = select(Event.unique_id).where(Event.dataset_id == dataset_id, Event.unique_id.in_(unique_ids))
    if import_job_id is not None:
        stmt = stmt.where(Event.import_job_id == import_job_id)
    return set(db.execute(stmt).scalars())


def add_events(db: Session, events: list[Event]):
    db.add_all(events)
    db.commit()
