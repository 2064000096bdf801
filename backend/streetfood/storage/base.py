"""Collaborator interfaces the sync engine is written against."""

from abc import ABC, abstractmethod
from typing import List

from ..models import Location, PhotoCategory, Rating, RatingInsert


class Store(ABC):
    """Structured persistence for locations and ratings."""

    @abstractmethod
    async def list_locations(self) -> List[Location]:
        pass

    @abstractmethod
    async def get_location(self, location_id: str) -> Location:
        """Raises NotFound when no such location exists."""

    @abstractmethod
    async def insert_location(self, location: Location) -> Location:
        pass

    @abstractmethod
    async def list_ratings(self) -> List[Rating]:
        pass

    @abstractmethod
    async def insert_rating(self, rating: Rating) -> Rating:
        """Raises NotFound when ``rating.location_id`` does not exist."""

    @abstractmethod
    async def delete_rating(self, rating_id: str, author_id: str) -> bool:
        """Delete only if ``author_id`` wrote the rating. Returns whether a row went away."""

    @abstractmethod
    async def delete_all_ratings_for_author(self, author_id: str) -> int:
        pass

    @abstractmethod
    async def purge_all(self) -> None:
        """Delete every rating, then every location. Safe to repeat."""


class BlobStore(ABC):
    """Binary object storage for photos. Failures raise BlobStoreError."""

    @abstractmethod
    async def upload(self, data: bytes, category: PhotoCategory) -> str:
        pass

    @abstractmethod
    async def download(self, uri: str) -> bytes:
        pass


class Subscription(ABC):
    """Async iterator of RatingInsert events until unsubscribed."""

    def __aiter__(self):
        return self

    @abstractmethod
    async def __anext__(self) -> RatingInsert:
        pass

    @abstractmethod
    async def unsubscribe(self) -> None:
        """Ends the iteration. Safe to call more than once."""


class Notifier(ABC):
    @abstractmethod
    async def subscribe(self) -> Subscription:
        pass
