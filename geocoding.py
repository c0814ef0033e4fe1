"""
Reverse Geocoding for delivery locations

Turns a coordinate pair into a human-readable delivery address using a
Nominatim-compatible reverse endpoint.

Features:
- Localized, detailed address components (zoom 18, addressdetails=1)
- Preferred component order, with the nearest landmark appended
- Falls back to display_name, then to "lat, lng" (6 decimals)
- Never raises: every failure degrades to the coordinate string
"""

import logging
from typing import Any, Dict, Optional

import requests

from config import Config

logger = logging.getLogger(__name__)


# (component, alternative) pairs in the order they appear in the address
ADDRESS_COMPONENTS = [
    ("house_number", None),
    ("road", None),
    ("neighbourhood", None),
    ("suburb", None),
    ("quarter", None),
    ("city_district", None),
    ("city", "town"),
    ("governorate", "state"),
    ("country", None),
]

LANDMARK_FIELDS = [
    "landmark",
    "attraction",
    "building",
    "mall",
    "theatre",
    "hospital",
    "university",
    "school",
]


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"


def compose_address(payload: Dict[str, Any], fallback: Optional[str] = None) -> Optional[str]:
    """
    Build the address text from a reverse-geocoding response body.

    Args:
        payload: JSON body with optional "address" and "display_name"
        fallback: Text used when neither is usable, e.g. the coordinates

    Returns:
        Joined components (plus "(near: ...)" when a landmark is known),
        else display_name, else fallback
    """
    components = payload.get("address") or {}
    parts = []
    for key, alternative in ADDRESS_COMPONENTS:
        value = components.get(key) or (components.get(alternative) if alternative else None)
        if value:
            parts.append(str(value))

    address = ", ".join(parts) if parts else (payload.get("display_name") or fallback)
    if not address:
        return None

    landmark = next((components[f] for f in LANDMARK_FIELDS if components.get(f)), None)
    if landmark:
        address += f" (near: {landmark})"
    return address


class AddressResolver:
    """Reverse geocoding client with coordinate fallback"""

    def __init__(
        self,
        base_url: str = Config.GEOCODER_URL,
        language: str = Config.GEOCODER_LANGUAGE,
        timeout: float = Config.GEOCODER_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.language = language
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": Config.GEOCODER_USER_AGENT})

    def resolve(self, lat: float, lng: float) -> str:
        """
        Resolve coordinates to an address string.

        Args:
            lat: Latitude, already validated
            lng: Longitude, already validated

        Returns:
            Address text; "lat, lng" when the lookup fails
        """
        params = {
            "format": "json",
            "lat": lat,
            "lon": lng,
            "accept-language": self.language,
            "zoom": 18,
            "addressdetails": 1,
        }
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            address = compose_address(response.json(), fallback=format_coordinates(lat, lng))
        except Exception as e:  # any failure degrades to coordinates
            logger.warning(f"Address lookup failed for ({lat}, {lng}): {e}")
            return format_coordinates(lat, lng)

        return address or format_coordinates(lat, lng)

    __call__ = resolve
