"""Tests for LocationResolver find-or-create."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from streetfood.errors import NotFound, StoreUnavailable
from streetfood.models import Location
from streetfood.resolver import LocationResolver
from streetfood.storage.memory import InMemoryStore


@pytest.fixture
def resolver(store):
    return LocationResolver(store)


def test_same_cart_resolves_to_same_location(resolver, store):
    async def scenario():
        first = await resolver.resolve_or_create("Mama's Pad Thai", 13.75630, 100.50180)
        second = await resolver.resolve_or_create("Mama's Pad Thai", 13.75630, 100.50180)
        return first, second

    first, second = asyncio.run(scenario())
    assert first.id == second.id
    assert len(store.locations) == 1


def test_different_name_at_same_point_creates_new_location(resolver, store):
    async def scenario():
        pad_thai = await resolver.resolve_or_create("Mama's Pad Thai", 13.75630, 100.50180)
        som_tam = await resolver.resolve_or_create("Som Tam Stand", 13.75630, 100.50180)
        return pad_thai, som_tam

    pad_thai, som_tam = asyncio.run(scenario())
    assert pad_thai.id != som_tam.id
    assert len(store.locations) == 2


def test_name_match_ignores_case_and_whitespace(resolver):
    async def scenario():
        first = await resolver.resolve_or_create("Som Tam Stand", 13.7563, 100.5018)
        second = await resolver.resolve_or_create("  som tam STAND ", 13.75632, 100.50178)
        return first, second

    first, second = asyncio.run(scenario())
    assert first.id == second.id


def test_outside_tolerance_creates_new_location(resolver):
    async def scenario():
        first = await resolver.resolve_or_create("X", 13.0001, 100.0001)
        second = await resolver.resolve_or_create("X", 13.0003, 100.0001)
        return first, second

    first, second = asyncio.run(scenario())
    assert first.id != second.id


def test_blank_and_placeholder_names_match(resolver):
    async def scenario():
        unnamed = await resolver.resolve_or_create(None, 1.0, 2.0)
        empty = await resolver.resolve_or_create("", 1.0, 2.0)
        placeholder = await resolver.resolve_or_create("Unknown", 1.0, 2.0)
        return unnamed, empty, placeholder

    unnamed, empty, placeholder = asyncio.run(scenario())
    assert unnamed.id == empty.id == placeholder.id


def test_new_location_keeps_submitted_values(resolver, store):
    location = asyncio.run(resolver.resolve_or_create("Som Tam Stand", 13.756321, 100.501789))

    assert location.name == "Som Tam Stand"
    assert location.latitude == 13.756321
    assert location.longitude == 100.501789
    assert store.locations[location.id] == location


def test_oldest_match_wins_when_several_exist(resolver, store):
    now = datetime.now(timezone.utc)
    newer = Location(name="X", latitude=13.0001, longitude=100.0001, created_at=now)
    older = Location(name="x", latitude=13.00012, longitude=100.0001, created_at=now - timedelta(hours=1))

    async def scenario():
        await store.insert_location(newer)
        await store.insert_location(older)
        return await resolver.resolve_or_create("X", 13.0001, 100.0001)

    assert asyncio.run(scenario()).id == older.id
    assert len(store.locations) == 2


def test_get_unknown_location_raises_not_found(resolver):
    with pytest.raises(NotFound):
        asyncio.run(resolver.get("missing"))


def test_store_failure_propagates():
    store = InMemoryStore()
    store.list_locations = AsyncMock(side_effect=StoreUnavailable("offline"))
    store.insert_location = AsyncMock()
    resolver = LocationResolver(store)

    with pytest.raises(StoreUnavailable):
        asyncio.run(resolver.resolve_or_create("X", 1.0, 2.0))
    store.insert_location.assert_not_called()
