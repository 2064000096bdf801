from .base import BlobStore, Notifier, Store, Subscription
from .memory import (
    InMemoryBlobStore,
    InMemoryNotifier,
    InMemoryStore,
    InMemorySubscription,
    seed_sample_data,
)

__all__ = [
    "Store",
    "BlobStore",
    "Notifier",
    "Subscription",
    "InMemoryStore",
    "InMemoryBlobStore",
    "InMemoryNotifier",
    "InMemorySubscription",
    "seed_sample_data",
]
