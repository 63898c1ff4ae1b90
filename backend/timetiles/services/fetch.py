"""Remote file download for URL imports: auth headers, size ceiling, overall timeout, retry with backoff."""
import base64
import hashlib
import json
import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import urlparse

import requests

from timetiles.core.config import settings
from timetiles.core.errors import FetchError
from timetiles.core.logging import logger

CHUNK_SIZE = 64 * 1024

CONTENT_TYPES = {
    "text/csv": ("text/csv", ".csv"),
    "application/csv": ("text/csv", ".csv"),
    "application/vnd.ms-excel": ("application/vnd.ms-excel", ".xls"),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        ".xlsx",
    ),
    "text/plain": ("text/plain", ".txt"),
    "application/json": ("application/json", ".json"),
}
EXTENSIONS = {ext: (mime, ext) for mime, ext in CONTENT_TYPES.values()}


@dataclass
class FetchResult:
    data: bytes
    content_type: str | None
    content_length: int
    attempts: int = 1


def build_auth_headers(auth_config: dict | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    cfg = auth_config or {}
    kind = cfg.get("type") or "none"

    if kind == "api-key" and cfg.get("api_key"):
        headers[cfg.get("api_key_header") or "X-API-Key"] = cfg["api_key"]
    elif kind == "bearer" and cfg.get("bearer_token"):
        headers["Authorization"] = f"Bearer {cfg['bearer_token']}"
    elif kind == "basic" and cfg.get("username"):
        raw = f"{cfg['username']}:{cfg.get('password') or ''}".encode("utf-8")
        headers["Authorization"] = f"Basic {base64.b64encode(raw).decode('ascii')}"

    custom = cfg.get("custom_headers")
    if isinstance(custom, str) and custom.strip():
        try:
            custom = json.loads(custom)
        except ValueError:
            logger.warning("custom_headers_invalid_json")
            custom = None
    if isinstance(custom, dict):
        headers.update({str(k): str(v) for k, v in custom.items()})
    return headers


def calculate_data_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def detect_file_type(content_type: str | None, data: bytes, source_url: str) -> tuple[str, str]:
    """Returns ``(mime_type, extension)``: header first, then URL suffix, magic bytes, text sniffing."""
    if content_type:
        normalized = content_type.split(";")[0].strip().lower()
        if normalized in CONTENT_TYPES:
            return CONTENT_TYPES[normalized]

    suffix = PurePosixPath(urlparse(source_url).path).suffix.lower()
    if suffix in EXTENSIONS:
        return EXTENSIONS[suffix]

    head = data[:8]
    if head.startswith(b"PK\x03\x04"):
        return CONTENT_TYPES["application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"]
    if head.startswith(b"\xd0\xcf\x11\xe0"):
        return CONTENT_TYPES["application/vnd.ms-excel"]

    sample = data[:1000].decode("utf-8", errors="ignore")
    if "," in sample or "\t" in sample or "\n" in sample:
        return CONTENT_TYPES["text/csv"]
    return "application/octet-stream", ".bin"


def _too_large(size: int, max_size: int) -> FetchError:
    return FetchError(f"File too large: {size} bytes (max: {max_size})", kind="too_large")


def fetch_url_data(
    source_url: str,
    headers: dict[str, str] | None = None,
    timeout_s: float | None = None,
    max_size: int | None = None,
    session: requests.Session | None = None,
) -> FetchResult:
    timeout_s = timeout_s or settings.URL_FETCH_TIMEOUT_MINUTES * 60
    max_size = max_size or settings.URL_FETCH_MAX_SIZE_MB * 1024 * 1024
    http = session or requests.Session()
    deadline = time.monotonic() + timeout_s

    try:
        with http.get(source_url, headers=headers or {}, stream=True, timeout=timeout_s) as resp:
            if not 200 <= resp.status_code < 300:
                raise FetchError(f"HTTP {resp.status_code}: {resp.reason}", kind="http",
                                 status_code=resp.status_code)

            declared = resp.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_size:
                raise _too_large(int(declared), max_size)

            chunks = []
            total = 0
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                total += len(chunk)
                if total > max_size:
                    raise _too_large(total, max_size)
                if time.monotonic() > deadline:
                    raise FetchError(f"Request timeout after {timeout_s:g}s", kind="timeout")
                chunks.append(chunk)

            return FetchResult(
                data=b"".join(chunks),
                content_type=resp.headers.get("content-type"),
                content_length=total,
            )
    except requests.Timeout as e:
        raise FetchError(f"Request timeout after {timeout_s:g}s", kind="timeout") from e
    except requests.RequestException as e:
        raise FetchError(f"Network error: {e}", kind="network") from e


def fetch_with_retry(
    source_url: str,
    headers: dict[str, str] | None = None,
    timeout_s: float | None = None,
    max_size: int | None = None,
    retry_config: dict | None = None,
) -> FetchResult:
    cfg = retry_config or {}
    max_retries = int(cfg.get("max_retries", settings.URL_FETCH_MAX_RETRIES))
    delay_s = float(cfg.get("retry_delay_minutes", settings.URL_FETCH_RETRY_DELAY_MINUTES)) * 60
    backoff = 2 if cfg.get("exponential_backoff", settings.URL_FETCH_EXPONENTIAL_BACKOFF) else 1
    attempts = max_retries + 1

    with requests.Session() as session:
        for attempt in range(1, attempts + 1):
            try:
                logger.info("url_fetch_attempt", source_url=source_url, attempt=attempt, max_attempts=attempts)
                result = fetch_url_data(source_url, headers, timeout_s, max_size, session=session)
                result.attempts = attempt
                return result
            except FetchError as e:
                last_attempt = attempt >= attempts or not e.retryable
                logger.warning(
                    "url_fetch_attempt_failed",
                    source_url=source_url,
                    attempt=attempt,
                    error=str(e),
                    error_kind=e.kind,
                    next_retry_in_s=None if last_attempt else delay_s,
                )
                if last_attempt:
                    raise
                time.sleep(delay_s)
                delay_s *= backoff
    raise FetchError("Fetch failed", kind="network")
