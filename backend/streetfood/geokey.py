"""
GeoKey
======
Canonical grouping key for a cart: normalized name plus a coordinate rounded
to ``COORDINATE_PRECISION`` decimal places, so GPS jitter from two visits to
the same cart collapses onto one key while a different cart a few metres away
keeps its own.
"""

import math
from typing import Optional

from .config import COORDINATE_PRECISION, MATCH_TOLERANCE_DEGREES, UNKNOWN_NAME

KEY_SEPARATOR = "|"
EARTH_RADIUS_METERS = 6_371_000.0


def display_name(name: Optional[str]) -> str:
    """Trimmed name with original casing, or the placeholder when blank."""
    if name is None:
        return UNKNOWN_NAME
    stripped = name.strip()
    return stripped or UNKNOWN_NAME


def normalize_name(name: Optional[str]) -> str:
    """Comparison form of a cart name: trimmed and lower-cased."""
    return display_name(name).lower()


def round_coordinate(value: float) -> float:
    # + 0.0 folds -0.0 into 0.0
    return round(value, COORDINATE_PRECISION) + 0.0


def key(name: Optional[str], lat: float, lon: float) -> str:
    return KEY_SEPARATOR.join(
        [
            normalize_name(name),
            f"{round_coordinate(lat):.{COORDINATE_PRECISION}f}",
            f"{round_coordinate(lon):.{COORDINATE_PRECISION}f}",
        ]
    )


def names_match(a: Optional[str], b: Optional[str]) -> bool:
    return normalize_name(a) == normalize_name(b)


def within_tolerance(
    lat_a: float,
    lon_a: float,
    lat_b: float,
    lon_b: float,
    tolerance: float = MATCH_TOLERANCE_DEGREES,
) -> bool:
    """Independent per-axis check, not a geodesic distance."""
    return abs(lat_a - lat_b) < tolerance and abs(lon_a - lon_b) < tolerance


def distance_meters(lat_a: float, lon_a: float, lat_b: float, lon_b: float) -> float:
    """Great-circle (haversine) distance."""
    phi_a, phi_b = math.radians(lat_a), math.radians(lat_b)
    d_phi = phi_b - phi_a
    d_lambda = math.radians(lon_b - lon_a)
    h = math.sin(d_phi / 2) ** 2 + math.cos(phi_a) * math.cos(phi_b) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))
