"""
In-memory collaborators
=======================
Process-local Store, BlobStore and Notifier with the same semantics as the
Supabase adapters: foreign key on rating insert, author-scoped delete, and an
insert broadcast to every open subscription. Backs ``--mock-data`` runs and
the test suite.
"""

import asyncio
import logging
import uuid
from typing import Dict, List, Optional

from ..errors import BlobStoreError, NotFound
from ..models import Location, PhotoCategory, Rating, RatingInsert
from .base import BlobStore, Notifier, Store, Subscription

logger = logging.getLogger(__name__)

_CLOSED = object()


class InMemorySubscription(Subscription):
    def __init__(self, notifier: "InMemoryNotifier"):
        self._notifier = notifier
        self._queue: asyncio.Queue = asyncio.Queue()
        self._awaiting_ack = False
        self.closed = False

    def push(self, event: RatingInsert) -> None:
        if not self.closed:
            self._queue.put_nowait(event)

    def _ack(self) -> None:
        # An event counts as handled once the consumer asks for the next one
        if self._awaiting_ack:
            self._awaiting_ack = False
            self._queue.task_done()

    async def __anext__(self) -> RatingInsert:
        self._ack()
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.task_done()
            raise StopAsyncIteration
        self._awaiting_ack = True
        return item

    async def unsubscribe(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._notifier.detach(self)
        self._queue.put_nowait(_CLOSED)

    async def join(self) -> None:
        """Wait until every pushed event has been consumed."""
        await self._queue.join()


class InMemoryNotifier(Notifier):
    def __init__(self):
        self.subscriptions: List[InMemorySubscription] = []

    async def subscribe(self) -> InMemorySubscription:
        subscription = InMemorySubscription(self)
        self.subscriptions.append(subscription)
        return subscription

    def detach(self, subscription: InMemorySubscription) -> None:
        if subscription in self.subscriptions:
            self.subscriptions.remove(subscription)

    def publish(self, event: RatingInsert) -> None:
        for subscription in list(self.subscriptions):
            subscription.push(event)

    async def join(self) -> None:
        for subscription in list(self.subscriptions):
            await subscription.join()


class InMemoryStore(Store):
    def __init__(self, notifier: Optional[InMemoryNotifier] = None):
        self.notifier = notifier
        self.locations: Dict[str, Location] = {}
        self.ratings: Dict[str, Rating] = {}

    async def list_locations(self) -> List[Location]:
        return sorted(self.locations.values(), key=lambda loc: loc.created_at, reverse=True)

    async def get_location(self, location_id: str) -> Location:
        try:
            return self.locations[location_id]
        except KeyError:
            raise NotFound(f"Location {location_id} not found") from None

    async def insert_location(self, location: Location) -> Location:
        self.locations[location.id] = location
        return location

    async def list_ratings(self) -> List[Rating]:
        return sorted(self.ratings.values(), key=lambda r: r.created_at, reverse=True)

    async def insert_rating(self, rating: Rating) -> Rating:
        location = await self.get_location(rating.location_id)
        stored = rating.model_copy(update={"display_name": None, "latitude": None, "longitude": None})
        self.ratings[stored.id] = stored
        if self.notifier is not None:
            self.notifier.publish(RatingInsert(stored, location))
        return stored

    async def delete_rating(self, rating_id: str, author_id: str) -> bool:
        rating = self.ratings.get(rating_id)
        if rating is None or rating.author_id != author_id:
            return False
        del self.ratings[rating_id]
        return True

    async def delete_all_ratings_for_author(self, author_id: str) -> int:
        doomed = [rid for rid, r in self.ratings.items() if r.author_id == author_id]
        for rid in doomed:
            del self.ratings[rid]
        return len(doomed)

    async def purge_all(self) -> None:
        self.ratings.clear()
        self.locations.clear()


class InMemoryBlobStore(BlobStore):
    def __init__(self, base_url: str = "memory://food-photos"):
        self.base_url = base_url
        self.objects: Dict[str, bytes] = {}

    async def upload(self, data: bytes, category: PhotoCategory) -> str:
        uri = f"{self.base_url}/{category.value}s/{uuid.uuid4()}_{category.value}.jpg"
        self.objects[uri] = bytes(data)
        return uri

    async def download(self, uri: str) -> bytes:
        try:
            return self.objects[uri]
        except KeyError:
            raise BlobStoreError(f"No object at {uri}") from None


SAMPLE_CARTS = [
    # (name, latitude, longitude, scores)
    ("Mama's Pad Thai", 13.75630, 100.50180, [5, 4, 5, 3, 4]),
    ("Som Tam Stand", 13.75630, 100.50180, [4, 5]),
    ("Khao Man Gai Corner", 13.74420, 100.53010, [5]),
]


async def seed_sample_data(store: InMemoryStore, blobs: InMemoryBlobStore) -> int:
    """Load a handful of carts and ratings for offline runs. Returns ratings added."""
    added = 0
    for name, lat, lon, scores in SAMPLE_CARTS:
        location = await store.insert_location(Location(name=name, latitude=lat, longitude=lon))
        for i, score in enumerate(scores):
            photo_url = await blobs.upload(f"{name}-{i}".encode(), PhotoCategory.FOOD)
            await store.insert_rating(
                Rating(
                    author_id=f"sample-user-{i}",
                    location_id=location.id,
                    score=score,
                    review_text="Would come back" if score >= 4 else None,
                    photo_url=photo_url,
                )
            )
            added += 1
    logger.info(f"Seeded {added} sample ratings across {len(SAMPLE_CARTS)} carts")
    return added
