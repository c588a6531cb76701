"""
Cache services: in-process store, two-tier manager, release note
helpers and the background janitor.
"""

from .cache_manager import CacheManager
from .janitor import CacheJanitor
from .memory_store import MemoryStore
from .release_notes import (
    get_cached_release_note,
    get_or_load_release_note,
    get_typed_cached_release_note,
    invalidate_cached_release_note,
    invalidate_organization_release_notes,
    release_note_key,
    set_cached_release_note,
)

__all__ = [
    "CacheJanitor",
    "CacheManager",
    "MemoryStore",
    "get_cached_release_note",
    "get_or_load_release_note",
    "get_typed_cached_release_note",
    "invalidate_cached_release_note",
    "invalidate_organization_release_notes",
    "release_note_key",
    "set_cached_release_note",
]
