"""Core storage - store snapshot persistence."""

from core.storage.snapshots import (
    save_store_snapshot,
    load_store_snapshot,
)

__all__ = [
    "save_store_snapshot",
    "load_store_snapshot",
]
