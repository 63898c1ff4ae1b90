"""Client for an external Nominatim-compatible geocoder."""
import requests

from timetiles.core.config import settings
from timetiles.core.logging import logger


class GeocodingService:
    def __init__(self, base_url: str | None = None, timeout_s: float | None = None, session=None):
        self.base_url = (base_url if base_url is not None else settings.GEOCODING_URL).rstrip("/")
        self.timeout_s = timeout_s or settings.GEOCODING_TIMEOUT_S
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def geocode(self, address: str) -> tuple[float, float] | None:
        if not self.enabled or not address or not address.strip():
            return None
        try:
            resp = self.session.get(
                f"{self.base_url}/search",
                params={"q": address.strip(), "format": "json", "limit": 1},
                timeout=self.timeout_s,
            )
            resp.raise_for_status()
            results = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("geocode_failed", address=address, error=str(e))
            return None
        if not results:
            return None
        try:
            return float(results[0]["lat"]), float(results[0]["lon"])
        except (KeyError, TypeError, ValueError):
            logger.warning("geocode_bad_response", address=address)
            return None
