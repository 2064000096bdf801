"""Derived, never-persisted views over the local ratings."""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .database import Rating


@dataclass(frozen=True)
class LocationGroup:
    """All ratings sharing one GeoKey, i.e. one physical cart."""

    key: str
    display_name: str
    latitude: float
    longitude: float
    ratings: Tuple[Rating, ...]

    @property
    def average_score(self) -> float:
        if not self.ratings:
            return 0.0
        return sum(r.score for r in self.ratings) / len(self.ratings)

    @property
    def review_count(self) -> int:
        return len(self.ratings)

    @property
    def most_recent(self) -> Optional[Rating]:
        # max() keeps the first maximum on ties
        return max(self.ratings, key=lambda r: r.created_at, default=None)

    @property
    def reviews_with_text(self) -> List[Rating]:
        return [r for r in self.ratings if r.has_text]

    @property
    def reviews_with_text_count(self) -> int:
        return len(self.reviews_with_text)

    def to_dict(self) -> dict:
        latest = self.most_recent
        return {
            "key": self.key,
            "name": self.display_name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "average_score": round(self.average_score, 2),
            "review_count": self.review_count,
            "reviews_with_text": self.reviews_with_text_count,
            "latest_photo_url": latest.photo_url if latest else None,
            "rating_ids": [r.id for r in self.ratings],
        }


@dataclass(frozen=True)
class AuthorSummary:
    author_id: str
    rating_count: int
    unique_places: int
    average_given: float

    def to_dict(self) -> dict:
        return {
            "author_id": self.author_id,
            "rating_count": self.rating_count,
            "unique_places": self.unique_places,
            "average_given": round(self.average_given, 2),
        }
