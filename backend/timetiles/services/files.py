import uuid
from pathlib import Path

from timetiles.core.config import settings
from timetiles.core.logging import logger


def ensure_dirs():
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)


def unique_filename(prefix: str, extension: str) -> str:
    ext = extension if not extension or extension.startswith(".") else f".{extension}"
    return f"{prefix}-{uuid.uuid4().hex}{ext}"


def save_bytes(data: bytes, filename: str) -> Path:
    ensure_dirs()
    dest = Path(settings.UPLOAD_DIR) / Path(filename).name
    dest.write_bytes(data)
    return dest


def read_bytes(path: str) -> bytes:
    return Path(path).read_bytes()


def delete_file(path: str) -> bool:
    """Best-effort removal; failures are logged, never raised."""
    try:
        Path(path).unlink(missing_ok=True)
        return True
    except OSError as e:
        logger.warning("file_delete_failed", file_path=path, error=str(e))
        return False
