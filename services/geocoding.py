"""Reverse geocoding through a Nominatim-compatible HTTP endpoint.

The result is reduced to the handful of fields the marketplace uses: a
human-readable label, the city, the country code and the raw address tags
(village, hamlet, suburb, neighbourhood, town, city, city_district).
"""
import logging
from typing import Any, Dict, Optional

import httpx

import config

logger = logging.getLogger(__name__)

# Address tags tried in order when building the short label
_LABEL_TAGS = ("suburb", "neighbourhood", "village", "hamlet", "city_district", "town", "city")


class GeocodingError(RuntimeError):
    """Raised when the geocoder cannot be reached or answers with an error."""


class ReverseGeocodingService:
    """Async client resolving coordinates to place tags."""

    def __init__(
        self,
        base_url: str = config.NOMINATIM_URL,
        timeout: float = config.GEOCODER_TIMEOUT,
        user_agent: str = config.GEOCODER_USER_AGENT,
        language: str = config.GEOCODER_LANGUAGE,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent, "Accept-Language": language}
        self._client = client

    async def _get(self, params: Dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url}/reverse"
        if self._client is not None:
            return await self._client.get(url, params=params, headers=self.headers, timeout=self.timeout)
        async with httpx.AsyncClient() as client:
            return await client.get(url, params=params, headers=self.headers, timeout=self.timeout)

    async def resolve(self, lat: float, lng: float) -> Optional[Dict[str, Any]]:
        """Return `{label, city, countryCode, raw}` or None when nothing is found.

        Raises:
            GeocodingError: on transport errors or non-2xx responses.
        """
        params = {"lat": lat, "lon": lng, "format": "jsonv2", "addressdetails": 1, "zoom": 16}
        try:
            response = await self._get(params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise GeocodingError(f"reverse geocoding failed for {lat},{lng}: {e}") from e

        payload = response.json()
        if not payload or "error" in payload:
            logger.debug("No reverse geocoding result for %s,%s", lat, lng)
            return None
        return parse_nominatim(payload)


def parse_nominatim(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a Nominatim `jsonv2` reverse response to the collaborator shape."""
    address = payload.get("address") or {}
    city = address.get("city") or address.get("town") or address.get("village") or address.get("hamlet")
    place = next((address[tag] for tag in _LABEL_TAGS if address.get(tag)), None)
    if place and city and place != city:
        label = f"{place}, {city}"
    else:
        label = place or city or payload.get("display_name")
    return {
        "label": label,
        "city": city,
        "countryCode": (address.get("country_code") or "").upper() or None,
        "raw": {"address": address, "placeRank": payload.get("place_rank")},
    }
