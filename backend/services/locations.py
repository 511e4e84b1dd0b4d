"""
Location Directory

Reference data for every PAR Brink location this service reports on,
keyed by location token. Loaded once from a JSON file.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, TypeAdapter

from backend.config import get_settings

logger = logging.getLogger(__name__)

BUNDLED_LOCATIONS_FILE = Path(__file__).resolve().parent.parent / "data" / "locations.json"


class InvalidLocationToken(Exception):
    """No location is registered under the given token."""

    def __init__(self, token: str):
        self.token = token
        super().__init__("Invalid location token")


class Location(BaseModel):
    """A restaurant location. Immutable reference data."""

    model_config = ConfigDict(frozen=True)

    token: str
    location_id: str
    name: str
    timezone: str
    state: str


class LocationDirectory:
    """In-memory lookup of locations by token."""

    def __init__(self, locations: list[Location]):
        self._by_token = {location.token: location for location in locations}

    @classmethod
    def from_file(cls, path: str | Path) -> "LocationDirectory":
        """Load a JSON list of locations."""
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        locations = TypeAdapter(list[Location]).validate_python(raw)
        logger.info(f"Loaded {len(locations)} locations from {path}")
        return cls(locations)

    def resolve(self, token: str) -> Location:
        """
        Look up a location by token.

        Raises:
            InvalidLocationToken: If the token is unknown
        """
        location = self._by_token.get(token)
        if location is None:
            raise InvalidLocationToken(token)
        return location

    def all(self) -> list[Location]:
        return list(self._by_token.values())

    def __len__(self) -> int:
        return len(self._by_token)


@lru_cache
def get_location_directory() -> LocationDirectory:
    """Process-wide directory from `locations_file`, else the bundled list."""
    settings = get_settings()
    return LocationDirectory.from_file(settings.locations_file or BUNDLED_LOCATIONS_FILE)


def resolve_location(token: str) -> Location:
    return get_location_directory().resolve(token)
