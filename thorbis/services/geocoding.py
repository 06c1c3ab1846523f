"""Address geocoding against the configured geocode endpoint."""

import logging
from typing import Optional, Tuple

import httpx

from thorbis.core.config import settings

logger = logging.getLogger(__name__)


class GeocodingClient:
    def __init__(self, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url if base_url is not None else settings.GEOCODE_URL
        self.transport = transport

    async def geocode(self, address: str) -> Optional[Tuple[float, float]]:
        """Return ``(lat, lng)`` for the best match, or None when nothing usable comes back."""
        if not self.base_url:
            return None
        try:
            async with httpx.AsyncClient(timeout=10, transport=self.transport) as client:
                resp = await client.get(self.base_url, params={"address": address})
            if resp.status_code != 200:
                logger.warning("Geocoding returned HTTP %s for %r", resp.status_code, address)
                return None
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Geocoding failed for %r: %s", address, exc)
            return None

        results = data.get("results") or []
        location = (results[0].get("geometry") or {}).get("location") if results else None
        if not location or location.get("lat") is None or location.get("lng") is None:
            return None
        return float(location["lat"]), float(location["lng"])


def full_address(address: str, city: str, state: str, zip_code: str) -> str:
    return f"{address}, {city}, {state} {zip_code}"
