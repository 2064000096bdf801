"""
Aggregator
==========
Pure transforms from a flat list of ratings to per-cart groups. Ratings are
keyed on their denormalized name and coordinate, so two Location rows created
for one cart by a resolution race still merge into a single group.
"""

import logging
from typing import Dict, Iterable, List

from . import geokey
from .config import NEARBY_RADIUS_METERS
from .models import AuthorSummary, LocationGroup, Rating

logger = logging.getLogger(__name__)


def group(ratings: Iterable[Rating]) -> List[LocationGroup]:
    """Group ratings by GeoKey, in first-seen order."""
    buckets: Dict[str, List[Rating]] = {}

    for rating in ratings:
        if not rating.is_located:
            logger.warning(f"Rating {rating.id} has no coordinate; leaving it out of groups")
            continue
        k = geokey.key(rating.display_name, rating.latitude, rating.longitude)
        buckets.setdefault(k, []).append(rating)

    groups = []
    for k, members in buckets.items():
        first = members[0]
        groups.append(
            LocationGroup(
                key=k,
                display_name=geokey.display_name(first.display_name),
                latitude=first.latitude,
                longitude=first.longitude,
                ratings=tuple(members),
            )
        )
    return groups


def nearby(
    groups: Iterable[LocationGroup],
    latitude: float,
    longitude: float,
    radius_m: float = NEARBY_RADIUS_METERS,
) -> List[LocationGroup]:
    """Groups within ``radius_m`` metres of the point, nearest first."""
    ranked = []
    for g in groups:
        distance = geokey.distance_meters(latitude, longitude, g.latitude, g.longitude)
        if distance <= radius_m:
            ranked.append((distance, g))
    ranked.sort(key=lambda pair: pair[0])
    return [g for _, g in ranked]


def author_summary(ratings: Iterable[Rating], author_id: str) -> AuthorSummary:
    own = [r for r in ratings if r.author_id == author_id]
    places = {geokey.key(r.display_name, r.latitude, r.longitude) for r in own if r.is_located}
    average = sum(r.score for r in own) / len(own) if own else 0.0
    return AuthorSummary(
        author_id=author_id,
        rating_count=len(own),
        unique_places=len(places),
        average_given=average,
    )
