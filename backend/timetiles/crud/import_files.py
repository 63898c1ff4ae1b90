from sqlalchemy.orm import Session

from timetiles.db.models.import_file import ImportFile


def get_import_file(db: Session, import_file_id: int) -> ImportFile | None:
    return db.query(ImportFile).filter(ImportFile.id == import_file_id).one_or_none()


def find_duplicate_file(db: Session, catalog_id: int | None, content_hash: str) -> ImportFile | None:
    if catalog_id is None:
        return None
    return (
        db.query(ImportFile)
        .filter(ImportFile.catalog_id == catalog_id, ImportFile.content_hash == content_hash)
        .order_by(ImportFile.id)
        .first()
    )


def create_import_file(db: Session, **fields) -> ImportFile:
    fields.setdefault("processing_options", {})
    f = ImportFile(**fields)
    db.add(f)
    db.commit()
    db.refresh(f)
    return f
