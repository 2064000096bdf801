"""Records persisted in the backing store."""

import uuid
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from pydantic import BaseModel, Field, field_validator

from ..config import MAX_SCORE, MIN_SCORE


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _parse_datetime(v):
    if isinstance(v, str):
        v = datetime.fromisoformat(v.replace("Z", "+00:00"))
    if isinstance(v, datetime) and v.tzinfo is None:
        # Naive timestamps from the store are UTC
        v = v.replace(tzinfo=timezone.utc)
    return v


class Location(BaseModel):
    """Canonical record of one physical vendor spot. Never mutated after creation."""

    id: str = Field(default_factory=new_id)
    name: Optional[str] = None
    latitude: float
    longitude: float
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"extra": "ignore", "frozen": True}

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if v is not None else v

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_datetime(cls, v):
        return _parse_datetime(v)


class Rating(BaseModel):
    """One user's review of one visit to one Location.

    ``display_name``, ``latitude`` and ``longitude`` are a denormalized copy of
    the owning Location, filled in by :meth:`with_location`. They are not
    persisted with the rating.
    """

    id: str = Field(default_factory=new_id)
    author_id: str
    location_id: str
    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)
    review_text: Optional[str] = None
    photo_url: str = Field(..., min_length=1)
    second_photo_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    display_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    model_config = {"extra": "ignore", "frozen": True}

    @field_validator("id", "author_id", "location_id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if v is not None else v

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_datetime(cls, v):
        return _parse_datetime(v)

    @property
    def has_text(self) -> bool:
        return bool(self.review_text and self.review_text.strip())

    @property
    def is_located(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def with_location(self, location: Location) -> "Rating":
        """Copy of this rating carrying the location's name and coordinate."""
        return self.model_copy(
            update={
                "location_id": location.id,
                "display_name": location.name,
                "latitude": location.latitude,
                "longitude": location.longitude,
            }
        )


class NewRating(BaseModel):
    """A rating as captured on the device, before upload and location resolution."""

    display_name: Optional[str] = None
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)
    review_text: Optional[str] = None
    photo: bytes = Field(..., min_length=1, description="Required food photo")
    second_photo: Optional[bytes] = Field(None, description="Optional cart photo")

    @field_validator("review_text", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class RatingInsert(NamedTuple):
    """A live-change event: a rating was persisted by some client."""

    rating: Rating
    location: Location
