"""
Sync Engine
===========
Session-lifetime owner of the local rating collection.

- bootstrap():       load everything from the store, then listen for inserts
- submit():          upload photos, resolve the cart, persist the rating
- on_notification(): duplicate gate for live inserts
- remove(), delete_account(), purge_all()
- teardown()

Local state only changes under ``self._lock``; store and blob calls run
outside it. submit() never inserts locally: a new rating shows up through
the live-change stream, or through the reload that follows the submit.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Tuple

from .. import aggregator, geokey
from ..config import (
    DUPLICATE_WINDOW_SECONDS,
    MATCH_TOLERANCE_DEGREES,
    NEARBY_RADIUS_METERS,
    RELOAD_AFTER_SUBMIT,
    RESUBSCRIBE_DELAY_SECONDS,
)
from ..errors import BlobStoreError, NotAuthenticated, UploadFailed
from ..models import (
    AuthorSummary,
    Location,
    LocationGroup,
    NewRating,
    PhotoCategory,
    Rating,
    SyncState,
)
from ..resolver import LocationResolver
from ..storage.base import BlobStore, Notifier, Store, Subscription

logger = logging.getLogger(__name__)


# =============================================================================
# SESSION STATS
# =============================================================================

@dataclass
class SyncStats:
    loaded: int = 0
    skipped: int = 0
    submitted: int = 0
    inserted: int = 0
    duplicates: int = 0
    errors: List[str] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.now)

    def summary(self) -> str:
        elapsed = datetime.now() - self.start_time
        return (
            f"\n{'='*50}\nSync Session\n{'='*50}\n"
            f"Duration: {elapsed.total_seconds():.1f}s\n"
            f"Ratings loaded: {self.loaded}\n"
            f"Ratings skipped: {self.skipped}\n"
            f"Ratings submitted: {self.submitted}\n"
            f"Live inserts applied: {self.inserted}\n"
            f"Duplicates suppressed: {self.duplicates}\n"
            f"Errors encountered: {len(self.errors)}\n"
        )


# =============================================================================
# ENGINE
# =============================================================================

class SyncEngine:
    def __init__(
        self,
        store: Store,
        blobs: BlobStore,
        notifier: Notifier,
        author_id: Optional[str] = None,
        resolver: Optional[LocationResolver] = None,
        reload_after_submit: bool = RELOAD_AFTER_SUBMIT,
        duplicate_window_seconds: float = DUPLICATE_WINDOW_SECONDS,
        tolerance: float = MATCH_TOLERANCE_DEGREES,
        resubscribe_delay: float = RESUBSCRIBE_DELAY_SECONDS,
    ):
        self.store = store
        self.blobs = blobs
        self.notifier = notifier
        self.author_id = author_id
        self.resolver = resolver or LocationResolver(store, tolerance=tolerance)
        self.reload_after_submit = reload_after_submit
        self.duplicate_window_seconds = duplicate_window_seconds
        self.tolerance = tolerance
        self.resubscribe_delay = resubscribe_delay

        self._ratings: List[Rating] = []  # newest first
        self._photos: Dict[str, bytes] = {}
        self._groups: List[LocationGroup] = []
        self._pending: List[Rating] = []  # live inserts applied while a reload is in flight
        self._deleted: Set[str] = set()  # ids removed this session

        self._lock = asyncio.Lock()
        self._load_lock = asyncio.Lock()
        self._closing = asyncio.Event()
        self._state = SyncState.IDLE
        self._submitting = 0

        self._subscription: Optional[Subscription] = None
        self._listener: Optional[asyncio.Task] = None

        self.stats = SyncStats()
        self.last_error: Optional[str] = None

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        if self._submitting and self._state is SyncState.READY:
            return SyncState.SUBMITTING
        return self._state

    @property
    def ratings(self) -> Tuple[Rating, ...]:
        return tuple(self._ratings)

    @property
    def groups(self) -> List[LocationGroup]:
        return list(self._groups)

    def photo(self, rating_id: str) -> Optional[bytes]:
        return self._photos.get(rating_id)

    def group_for(self, name: Optional[str], latitude: float, longitude: float) -> Optional[LocationGroup]:
        wanted = geokey.key(name, latitude, longitude)
        return next((g for g in self._groups if g.key == wanted), None)

    def nearby(self, latitude: float, longitude: float, radius_m: float = NEARBY_RADIUS_METERS) -> List[LocationGroup]:
        return aggregator.nearby(self._groups, latitude, longitude, radius_m)

    def summary(self, author_id: Optional[str] = None) -> AuthorSummary:
        return aggregator.author_summary(self._ratings, author_id or self._require_author())

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def bootstrap(self) -> int:
        """Replace local state with the store's contents and start listening."""
        self._closing.clear()
        count = await self.reload()
        if self._listener is not None and not self._listener.done():
            return count

        if self._subscription is None and not self._closing.is_set():
            await self._open_subscription()
        if self._closing.is_set():
            # teardown() ran while loading or subscribing
            await self._close_subscription()
            self._state = SyncState.IDLE
            logger.info("Torn down during bootstrap; not listening")
            return count
        self._listener = asyncio.create_task(self._listen())
        return count

    async def reload(self) -> int:
        """
        Fetch all ratings and locations and swap them in as the new local state.

        Ratings whose location is missing or whose photo cannot be downloaded
        are skipped. On failure the previous state is kept and the error is
        re-raised.
        """
        async with self._load_lock:
            previous = self._state
            self._state = SyncState.LOADING
            async with self._lock:
                self._pending = []

            try:
                locations, ratings = await asyncio.gather(
                    self.store.list_locations(), self.store.list_ratings()
                )
                joined = self._join(ratings, locations)
                photos = await asyncio.gather(*(self._fetch_photo(r) for r in joined))
            except Exception as e:
                self._state = previous
                self._record_error("reload", e)
                raise

            kept: List[Rating] = []
            kept_photos: Dict[str, bytes] = {}
            for rating, photo in zip(joined, photos):
                if photo is None:
                    self.stats.skipped += 1
                    continue
                kept.append(rating)
                kept_photos[rating.id] = photo

            async with self._lock:
                fetched_ids = {r.id for r in kept}
                for rating in self._pending:
                    if rating.id not in fetched_ids and rating.id in self._photos:
                        kept.insert(0, rating)
                        kept_photos[rating.id] = self._photos[rating.id]
                self._pending = []
                self._ratings = kept
                self._photos = kept_photos
                self._regroup()
                self._state = SyncState.READY

        self.stats.loaded = len(kept)
        self.last_error = None
        logger.info(f"Loaded {len(kept)} ratings across {len(self._groups)} carts")
        return len(kept)

    def _join(self, ratings: List[Rating], locations: List[Location]) -> List[Rating]:
        by_id = {loc.id: loc for loc in locations}
        joined = []
        for rating in ratings:
            location = by_id.get(rating.location_id)
            if location is None:
                logger.warning(f"Skipping rating {rating.id}: location {rating.location_id} not found")
                self.stats.skipped += 1
                continue
            joined.append(rating.with_location(location))
        return joined

    async def _fetch_photo(self, rating: Rating) -> Optional[bytes]:
        cached = self._photos.get(rating.id)
        if cached is not None:
            return cached
        try:
            return await self.blobs.download(rating.photo_url)
        except BlobStoreError as e:
            logger.warning(f"Skipping rating {rating.id}: photo unavailable ({e})")
            return None

    # -------------------------------------------------------------------------
    # Submitting
    # -------------------------------------------------------------------------

    async def submit(self, new_rating: NewRating) -> Rating:
        """
        Persist a new rating and return it with its resolved location.

        Raises NotAuthenticated without an author, UploadFailed when the food
        photo cannot be stored (nothing is persisted), and StoreUnavailable
        for store errors. The local collection is not touched here.
        """
        author_id = self._require_author()
        self._submitting += 1
        try:
            created = await self._persist(new_rating, author_id)
        except Exception as e:
            self._record_error("submit", e)
            raise
        finally:
            self._submitting -= 1

        if self.reload_after_submit:
            try:
                await self.reload()
            except Exception as e:
                # Rating is already persisted
                logger.warning(f"Reload after submit failed ({e}); relying on live updates")
        return created

    async def _persist(self, new_rating: NewRating, author_id: str) -> Rating:
        try:
            photo_url = await self.blobs.upload(new_rating.photo, PhotoCategory.FOOD)
        except BlobStoreError as e:
            raise UploadFailed(str(e)) from e

        second_photo_url = None
        if new_rating.second_photo:
            try:
                second_photo_url = await self.blobs.upload(new_rating.second_photo, PhotoCategory.CART)
            except BlobStoreError as e:
                logger.warning(f"Cart photo upload failed, saving rating without it: {e}")

        location = await self.resolver.resolve_or_create(
            new_rating.display_name, new_rating.latitude, new_rating.longitude
        )
        rating = Rating(
            author_id=author_id,
            location_id=location.id,
            score=new_rating.score,
            review_text=new_rating.review_text,
            photo_url=photo_url,
            second_photo_url=second_photo_url,
        )
        created = await self.store.insert_rating(rating)
        self.stats.submitted += 1
        logger.info(
            f"Rating {created.id} saved for '{geokey.display_name(location.name)}' (score {created.score})"
        )
        return created.with_location(location)

    # -------------------------------------------------------------------------
    # Live updates
    # -------------------------------------------------------------------------

    def is_duplicate(self, incoming: Rating) -> bool:
        """Same id, an id deleted this session, or a near-identical rating by the same author."""
        if incoming.id in self._deleted:
            return True
        if any(existing.id == incoming.id for existing in self._ratings):
            return True
        return any(self._looks_like(existing, incoming) for existing in self._ratings)

    def _looks_like(self, existing: Rating, incoming: Rating) -> bool:
        if existing.author_id != incoming.author_id or existing.score != incoming.score:
            return False
        if not (existing.is_located and incoming.is_located):
            return False
        if not geokey.within_tolerance(
            existing.latitude, existing.longitude, incoming.latitude, incoming.longitude, self.tolerance
        ):
            return False
        gap = abs((existing.created_at - incoming.created_at).total_seconds())
        return gap <= self.duplicate_window_seconds

    async def on_notification(self, rating: Rating, location: Location) -> bool:
        """Apply a live insert. Returns True when the rating was added locally."""
        if self._closing.is_set():
            logger.debug(f"Ignoring live rating {rating.id} after teardown")
            return False

        incoming = rating.with_location(location)
        if self.is_duplicate(incoming):
            self.stats.duplicates += 1
            logger.debug(f"Suppressed duplicate rating {incoming.id}")
            return False

        photo = await self._fetch_photo(incoming)
        if photo is None:
            self.stats.skipped += 1
            return False

        async with self._lock:
            if self._closing.is_set():
                return False
            # Another delivery may have landed while the photo downloaded
            if self.is_duplicate(incoming):
                self.stats.duplicates += 1
                return False
            self._ratings.insert(0, incoming)
            self._photos[incoming.id] = photo
            if self._state is SyncState.LOADING:
                self._pending.append(incoming)
            self._regroup()

        self.stats.inserted += 1
        logger.info(f"Live rating {incoming.id} added for '{geokey.display_name(incoming.display_name)}'")
        return True

    async def _open_subscription(self) -> bool:
        try:
            self._subscription = await self.notifier.subscribe()
        except Exception as e:
            self._record_error("subscribe", e)
            return False
        return True

    async def _pause(self) -> None:
        try:
            await asyncio.wait_for(self._closing.wait(), self.resubscribe_delay)
        except asyncio.TimeoutError:
            pass

    async def _listen(self) -> None:
        while not self._closing.is_set():
            if self._subscription is None:
                if not await self._open_subscription():
                    await self._pause()
                    continue
                if self._closing.is_set():
                    await self._subscription.unsubscribe()
                    self._subscription = None
                    break

            subscription = self._subscription
            try:
                async for event in subscription:
                    try:
                        await self.on_notification(event.rating, event.location)
                    except Exception as e:
                        self._record_error("live update", e)
            except Exception as e:
                self._record_error("live stream", e)

            if self._subscription is subscription:
                self._subscription = None
            if not self._closing.is_set():
                logger.warning(f"Live subscription ended; resubscribing in {self.resubscribe_delay}s")
                await self._pause()

    async def _close_subscription(self) -> Optional[Subscription]:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.unsubscribe()
        return subscription

    async def teardown(self) -> None:
        """Stop listening. Waits for an in-flight notification; safe to repeat."""
        self._closing.set()
        subscription = await self._close_subscription()

        listener, self._listener = self._listener, None
        if listener is not None and listener is not asyncio.current_task():
            try:
                await listener
            except Exception as e:
                logger.error(f"Listener stopped with error: {e}")
        if subscription is not None or listener is not None:
            logger.info("Sync engine torn down")
        self._state = SyncState.IDLE

    # -------------------------------------------------------------------------
    # Deleting
    # -------------------------------------------------------------------------

    async def remove(self, rating_id: str) -> bool:
        """Delete one of the caller's ratings. Local state changes only if the store deleted it."""
        author_id = self._require_author()
        try:
            deleted = await self.store.delete_rating(rating_id, author_id)
        except Exception as e:
            self._record_error("remove", e)
            raise
        if not deleted:
            logger.warning(f"Store did not delete rating {rating_id} for author {author_id}")
            return False

        async with self._lock:
            self._deleted.add(rating_id)
            self._drop(lambda r: r.id == rating_id)
        logger.info(f"Rating {rating_id} deleted")
        return True

    async def delete_account(self) -> int:
        """Delete every rating the caller wrote. Returns how many the store removed."""
        author_id = self._require_author()
        count = await self.store.delete_all_ratings_for_author(author_id)
        async with self._lock:
            self._drop(lambda r: r.author_id == author_id)
        logger.info(f"Deleted {count} ratings for author {author_id}")
        return count

    async def purge_all(self) -> None:
        """Administrative wipe of every rating and location."""
        await self.store.purge_all()
        async with self._lock:
            self._drop(lambda r: True)
        logger.warning("All ratings and locations purged")

    def _drop(self, predicate: Callable[[Rating], bool]) -> int:
        doomed = {r.id for r in self._ratings if predicate(r)}
        self._deleted.update(doomed)
        self._ratings = [r for r in self._ratings if r.id not in doomed]
        self._pending = [r for r in self._pending if r.id not in doomed]
        for rid in doomed:
            self._photos.pop(rid, None)
        self._regroup()
        return len(doomed)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _regroup(self) -> None:
        self._groups = aggregator.group(self._ratings)

    def _require_author(self) -> str:
        if not self.author_id:
            raise NotAuthenticated("No signed-in author")
        return self.author_id

    def _record_error(self, action: str, error: Exception) -> None:
        self.last_error = getattr(error, "user_message", str(error))
        self.stats.errors.append(f"{action}: {str(error)[:80]}")
        logger.error(f"{action} failed: {error}")
