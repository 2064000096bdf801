"""
Supabase Collaborators
======================
Store, BlobStore and Notifier backed by a ``supabase.AsyncClient``.

Tables (snake_case columns):
- locations: id, name, latitude, longitude, created_at
- ratings:   id, user_id, location_id, rating, review_text,
             food_photo_url, cart_photo_url, created_at
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from supabase import AsyncClient

from ..config import LOCATIONS_TABLE, PHOTO_BUCKET, RATINGS_TABLE, REALTIME_CHANNEL
from ..errors import BlobStoreError, NotFound, StoreUnavailable
from ..models import Location, PhotoCategory, Rating, RatingInsert
from .base import BlobStore, Notifier, Store, Subscription

logger = logging.getLogger(__name__)

# Filter that matches every row, for bulk deletes
NIL_UUID = "00000000-0000-0000-0000-000000000000"
FOREIGN_KEY_VIOLATION = "23503"

_CLOSED = object()


# =============================================================================
# ROW MAPPING
# =============================================================================

def location_to_record(location: Location) -> Dict[str, Any]:
    return {
        "id": location.id,
        "name": location.name,
        "latitude": location.latitude,
        "longitude": location.longitude,
        "created_at": location.created_at.isoformat(),
    }


def location_from_record(row: Dict[str, Any]) -> Location:
    return Location.model_validate(row)


def rating_to_record(rating: Rating) -> Dict[str, Any]:
    return {
        "id": rating.id,
        "user_id": rating.author_id,
        "location_id": rating.location_id,
        "rating": rating.score,
        "review_text": rating.review_text,
        "food_photo_url": rating.photo_url,
        "cart_photo_url": rating.second_photo_url,
        "created_at": rating.created_at.isoformat(),
    }


def rating_from_record(row: Dict[str, Any]) -> Rating:
    """Raises pydantic ValidationError for rows missing required fields."""
    return Rating(
        id=row["id"],
        author_id=row["user_id"],
        location_id=row["location_id"],
        score=row["rating"],
        review_text=row.get("review_text"),
        photo_url=row.get("food_photo_url") or "",
        second_photo_url=row.get("cart_photo_url"),
        created_at=row["created_at"],
    )


def decode_locations(rows: List[Dict[str, Any]]) -> List[Location]:
    locations = []
    for row in rows:
        try:
            locations.append(location_from_record(row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed location row {row.get('id')}: {e}")
    return locations


def decode_ratings(rows: List[Dict[str, Any]]) -> List[Rating]:
    ratings = []
    for row in rows:
        try:
            ratings.append(rating_from_record(row))
        except (KeyError, ValidationError) as e:
            logger.warning(f"Skipping malformed rating row {row.get('id')}: {e}")
    return ratings


# =============================================================================
# STORE
# =============================================================================

class SupabaseStore(Store):
    def __init__(
        self,
        client: AsyncClient,
        locations_table: str = LOCATIONS_TABLE,
        ratings_table: str = RATINGS_TABLE,
    ):
        self.client = client
        self.locations_table = locations_table
        self.ratings_table = ratings_table

    async def _execute(self, query, action: str):
        try:
            return await query.execute()
        except Exception as e:
            if getattr(e, "code", None) == FOREIGN_KEY_VIOLATION:
                raise NotFound(f"{action}: referenced row does not exist") from e
            logger.error(f"Supabase {action} failed: {e}")
            raise StoreUnavailable(f"{action} failed: {e}") from e

    async def list_locations(self) -> List[Location]:
        query = self.client.table(self.locations_table).select("*").order("created_at", desc=True)
        result = await self._execute(query, "list locations")
        locations = decode_locations(result.data or [])
        logger.info(f"Fetched {len(locations)} locations")
        return locations

    async def get_location(self, location_id: str) -> Location:
        query = self.client.table(self.locations_table).select("*").eq("id", location_id)
        result = await self._execute(query, "get location")
        locations = decode_locations(result.data or [])
        if not locations:
            raise NotFound(f"Location {location_id} not found")
        return locations[0]

    async def insert_location(self, location: Location) -> Location:
        query = self.client.table(self.locations_table).insert(location_to_record(location))
        result = await self._execute(query, "insert location")
        return location_from_record(result.data[0]) if result.data else location

    async def list_ratings(self) -> List[Rating]:
        query = self.client.table(self.ratings_table).select("*").order("created_at", desc=True)
        result = await self._execute(query, "list ratings")
        ratings = decode_ratings(result.data or [])
        logger.info(f"Fetched {len(ratings)} ratings")
        return ratings

    async def insert_rating(self, rating: Rating) -> Rating:
        query = self.client.table(self.ratings_table).insert(rating_to_record(rating))
        result = await self._execute(query, "insert rating")
        return rating_from_record(result.data[0]) if result.data else rating

    async def delete_rating(self, rating_id: str, author_id: str) -> bool:
        # user_id filter: only the author's own row can match
        query = (
            self.client.table(self.ratings_table)
            .delete()
            .eq("id", rating_id)
            .eq("user_id", author_id)
        )
        result = await self._execute(query, "delete rating")
        return bool(result.data)

    async def delete_all_ratings_for_author(self, author_id: str) -> int:
        query = self.client.table(self.ratings_table).delete().eq("user_id", author_id)
        result = await self._execute(query, "delete author ratings")
        return len(result.data or [])

    async def purge_all(self) -> None:
        logger.warning("Deleting ALL ratings and locations")
        await self._execute(
            self.client.table(self.ratings_table).delete().neq("id", NIL_UUID), "purge ratings"
        )
        await self._execute(
            self.client.table(self.locations_table).delete().neq("id", NIL_UUID), "purge locations"
        )


# =============================================================================
# BLOB STORE
# =============================================================================

class SupabaseBlobStore(BlobStore):
    def __init__(self, client: AsyncClient, bucket: str = PHOTO_BUCKET):
        self.client = client
        self.bucket = bucket

    def path_for(self, uri: str) -> str:
        """Bucket-relative path of a public URL (paths pass through unchanged)."""
        marker = f"/object/public/{self.bucket}/"
        path = uri.split(marker, 1)[1] if marker in uri else uri
        return path.split("?", 1)[0]

    async def upload(self, data: bytes, category: PhotoCategory) -> str:
        path = f"{category.value}s/{uuid.uuid4()}_{category.value}.jpg"
        logger.info(f"Uploading {category.value} photo ({len(data)} bytes)")
        bucket = self.client.storage.from_(self.bucket)
        try:
            await bucket.upload(path, data, {"content-type": "image/jpeg"})
            return await bucket.get_public_url(path)
        except Exception as e:
            raise BlobStoreError(f"Upload of {path} failed: {e}") from e

    async def download(self, uri: str) -> bytes:
        path = self.path_for(uri)
        try:
            return await self.client.storage.from_(self.bucket).download(path)
        except Exception as e:
            raise BlobStoreError(f"Download of {path} failed: {e}") from e


# =============================================================================
# LIVE CHANGES
# =============================================================================

def extract_record(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Row of a realtime INSERT payload."""
    data = payload.get("data", payload)
    return data.get("record") or data.get("new")


class SupabaseSubscription(Subscription):
    def __init__(self, client: AsyncClient, store: Store, channel_name: str, table: str):
        self.client = client
        self.store = store
        self.channel_name = channel_name
        self.table = table
        self.channel = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _on_insert(self, payload: Dict[str, Any]) -> None:
        if not self.closed:
            self._queue.put_nowait(payload)

    async def open(self) -> None:
        self.channel = self.client.channel(self.channel_name)
        self.channel.on_postgres_changes(
            "INSERT", schema="public", table=self.table, callback=self._on_insert
        )
        await self.channel.subscribe()
        logger.info(f"Real-time subscription to '{self.table}' active")

    async def __anext__(self) -> RatingInsert:
        while True:
            payload = await self._queue.get()
            if payload is _CLOSED:
                raise StopAsyncIteration
            try:
                record = extract_record(payload)
                if record is None:
                    logger.warning(f"Real-time payload without a record: {payload}")
                    continue
                rating = rating_from_record(record)
                location = await self.store.get_location(rating.location_id)
            except Exception as e:
                logger.error(f"Failed to decode/fetch real-time rating: {e}")
                continue
            return RatingInsert(rating, location)

    async def unsubscribe(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.channel is not None:
            try:
                await self.client.remove_channel(self.channel)
            except Exception as e:
                logger.warning(f"Error while leaving channel {self.channel_name}: {e}")
        self._queue.put_nowait(_CLOSED)
        logger.info("Unsubscribed from real-time updates")


class SupabaseNotifier(Notifier):
    def __init__(
        self,
        client: AsyncClient,
        store: Store,
        channel_name: str = REALTIME_CHANNEL,
        table: str = RATINGS_TABLE,
    ):
        self.client = client
        self.store = store
        self.channel_name = channel_name
        self.table = table

    async def subscribe(self) -> SupabaseSubscription:
        subscription = SupabaseSubscription(self.client, self.store, self.channel_name, self.table)
        await subscription.open()
        return subscription
