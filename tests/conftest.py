"""Shared fixtures: in-memory collaborators and rating factories."""

from datetime import datetime, timedelta, timezone

import pytest

from streetfood.models import Location, NewRating, PhotoCategory, Rating
from streetfood.storage.memory import InMemoryBlobStore, InMemoryNotifier, InMemoryStore
from streetfood.sync.engine import SyncEngine

BASE_TIME = datetime(2025, 10, 16, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def notifier():
    return InMemoryNotifier()


@pytest.fixture
def store(notifier):
    return InMemoryStore(notifier)


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
def engine(store, blobs, notifier):
    return SyncEngine(
        store,
        blobs,
        notifier,
        author_id="user-1",
        reload_after_submit=False,
        resubscribe_delay=0.01,
    )


@pytest.fixture
def make_rating():
    """Located rating, as it looks after the join with its Location."""

    def _make(
        score=5,
        name="X",
        lat=13.0001,
        lon=100.0001,
        author_id="user-1",
        seconds=0,
        review_text=None,
        location_id="loc-1",
        **overrides,
    ):
        return Rating(
            author_id=author_id,
            location_id=location_id,
            score=score,
            review_text=review_text,
            photo_url=f"memory://photos/{score}-{seconds}.jpg",
            created_at=BASE_TIME + timedelta(seconds=seconds),
            display_name=name,
            latitude=lat,
            longitude=lon,
            **overrides,
        )

    return _make


@pytest.fixture
def new_rating():
    def _make(name="X", lat=13.0001, lon=100.0001, score=5, second_photo=None, review_text=None):
        return NewRating(
            display_name=name,
            latitude=lat,
            longitude=lon,
            score=score,
            review_text=review_text,
            photo=b"food-jpeg",
            second_photo=second_photo,
        )

    return _make


@pytest.fixture
def seed(store, blobs):
    """Persist a location plus one rating with a downloadable photo."""

    async def _seed(name="X", lat=13.0001, lon=100.0001, score=5, author_id="user-2", seconds=0):
        location = await store.insert_location(Location(name=name, latitude=lat, longitude=lon))
        photo_url = await blobs.upload(b"jpeg", PhotoCategory.FOOD)
        rating = await store.insert_rating(
            Rating(
                author_id=author_id,
                location_id=location.id,
                score=score,
                photo_url=photo_url,
                created_at=BASE_TIME + timedelta(seconds=seconds),
            )
        )
        return rating, location

    return _seed
