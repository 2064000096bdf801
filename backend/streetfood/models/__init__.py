"""
Street Food Data Models
=======================
Pydantic records for the store and derived in-memory groupings.
"""

from .enums import PhotoCategory, SyncState
from .database import Location, NewRating, Rating, RatingInsert
from .grouping import AuthorSummary, LocationGroup

__all__ = [
    # Enums
    "PhotoCategory",
    "SyncState",
    # Database
    "Location",
    "Rating",
    "NewRating",
    "RatingInsert",
    # Derived
    "LocationGroup",
    "AuthorSummary",
]
