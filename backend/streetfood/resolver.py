"""Find-or-create of the canonical Location for a submitted cart name and coordinate."""

import logging
from typing import List, Optional

from . import geokey
from .config import MATCH_TOLERANCE_DEGREES
from .models import Location
from .storage.base import Store

logger = logging.getLogger(__name__)


class LocationResolver:
    """
    Maps (name, coordinate) onto exactly one Location id.

    A stored Location matches when its name equals the query name
    case-insensitively after trimming (blank names and the placeholder count
    as equal) and both axes differ by less than ``tolerance`` degrees.

    Two concurrent resolutions for a brand-new cart can both miss and both
    create a row. That is accepted: the Aggregator groups by GeoKey, not by
    Location id, so the duplicates still render as one cart.
    """

    def __init__(self, store: Store, tolerance: float = MATCH_TOLERANCE_DEGREES):
        self.store = store
        self.tolerance = tolerance

    def matches(self, location: Location, name: Optional[str], latitude: float, longitude: float) -> bool:
        return geokey.names_match(location.name, name) and geokey.within_tolerance(
            location.latitude, location.longitude, latitude, longitude, self.tolerance
        )

    def find_matches(
        self, locations: List[Location], name: Optional[str], latitude: float, longitude: float
    ) -> List[Location]:
        return [loc for loc in locations if self.matches(loc, name, latitude, longitude)]

    async def find(self, name: Optional[str], latitude: float, longitude: float) -> Optional[Location]:
        """Existing Location for the query, oldest first when several match."""
        locations = await self.store.list_locations()
        candidates = self.find_matches(locations, name, latitude, longitude)
        if not candidates:
            return None
        if len(candidates) > 1:
            logger.warning(
                f"{len(candidates)} locations match '{geokey.display_name(name)}' "
                f"near {latitude}, {longitude}; using the oldest"
            )
        return min(candidates, key=lambda loc: (loc.created_at, loc.id))

    async def resolve_or_create(self, name: Optional[str], latitude: float, longitude: float) -> Location:
        existing = await self.find(name, latitude, longitude)
        if existing is not None:
            logger.info(f"Found existing location '{geokey.display_name(existing.name)}' ({existing.id})")
            return existing

        # Name and coordinate are stored as submitted, not rounded
        location = Location(name=name, latitude=latitude, longitude=longitude)
        created = await self.store.insert_location(location)
        logger.info(
            f"Created new location '{geokey.display_name(created.name)}' at "
            f"{created.latitude}, {created.longitude} ({created.id})"
        )
        return created

    async def get(self, location_id: str) -> Location:
        """Location by id; raises NotFound rather than substituting another."""
        return await self.store.get_location(location_id)
