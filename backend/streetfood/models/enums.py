"""Enumeration types for the street food sync engine."""

from enum import Enum


class PhotoCategory(str, Enum):
    FOOD = "food"
    CART = "cart"


class SyncState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
