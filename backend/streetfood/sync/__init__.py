from .engine import SyncEngine, SyncStats

__all__ = ["SyncEngine", "SyncStats"]
