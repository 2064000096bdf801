from dataclasses import dataclass
from typing import Optional
from contextlib import asynccontextmanager

from ..config import SUPABASE_EMAIL, SUPABASE_PASSWORD, USE_MOCK_DATA
from ..db import get_current_author_id, get_supabase, sign_in
from ..errors import StoreUnavailable
from ..storage.base import BlobStore, Notifier, Store
from ..storage.memory import InMemoryBlobStore, InMemoryNotifier, InMemoryStore, seed_sample_data
from ..storage.supabase_store import SupabaseBlobStore, SupabaseNotifier, SupabaseStore
from .engine import SyncEngine

MOCK_AUTHOR_ID = "local-user"


@dataclass
class Services:
    """Container for the collaborators and the engine built on them."""
    store: Store
    blobs: BlobStore
    notifier: Notifier
    engine: SyncEngine


@asynccontextmanager
async def create_services(
    mock_data: bool = USE_MOCK_DATA,
    author_id: Optional[str] = None,
    email: Optional[str] = SUPABASE_EMAIL,
    password: Optional[str] = SUPABASE_PASSWORD,
):
    """
    Build the store, blob store, notifier and sync engine once per process.

    Usage:
        async with create_services() as services:
            await services.engine.bootstrap()
    """
    if mock_data:
        notifier = InMemoryNotifier()
        store = InMemoryStore(notifier)
        blobs = InMemoryBlobStore()
        await seed_sample_data(store, blobs)
        author_id = author_id or MOCK_AUTHOR_ID
    else:
        client = await get_supabase()
        if client is None:
            raise StoreUnavailable("SUPABASE_URL / SUPABASE_KEY not set")
        if email and password:
            author_id = await sign_in(client, email, password)
        elif author_id is None:
            author_id = await get_current_author_id(client)
        store = SupabaseStore(client)
        blobs = SupabaseBlobStore(client)
        notifier = SupabaseNotifier(client, store)

    engine = SyncEngine(store, blobs, notifier, author_id=author_id)
    services = Services(store=store, blobs=blobs, notifier=notifier, engine=engine)

    try:
        yield services
    finally:
        await engine.teardown()
