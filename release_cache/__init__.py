"""
Release Cache

Two-tier (in-process + Redis) cache for published release notes.
"""

from .infrastructure.redis.exceptions import (
    CacheDeserializationException,
    CacheException,
)
from .services.cache import (
    CacheJanitor,
    CacheManager,
    MemoryStore,
    get_cached_release_note,
    get_or_load_release_note,
    get_typed_cached_release_note,
    invalidate_cached_release_note,
    invalidate_organization_release_notes,
    release_note_key,
    set_cached_release_note,
)

__version__ = "0.1.0"

__all__ = [
    "CacheDeserializationException",
    "CacheException",
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
