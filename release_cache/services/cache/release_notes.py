"""
Release note cache helpers.

Keyed by (organization slug, release slug) on top of a CacheManager.
"""

from typing import Any, Optional

from ...domain.cache.entities import ReleaseNotePageData
from ...domain.cache.value_objects import CacheKey
from .cache_manager import CacheManager, Loader

RELEASE_NOTE_TTL = 3600


def release_note_key(org_slug: str, release_slug: str) -> str:
    """Cache key for one release note, e.g. ``release_note:acme:v1-2``."""
    return CacheKey.release_note(org_slug, release_slug).value


async def get_cached_release_note(
    cache: CacheManager, org_slug: str, release_slug: str
) -> Any:
    return await cache.get(release_note_key(org_slug, release_slug))


async def get_typed_cached_release_note(
    cache: CacheManager, org_slug: str, release_slug: str
) -> Optional[ReleaseNotePageData]:
    """Cached release page payload, validated as ``ReleaseNotePageData``."""
    return await cache.get_typed(
        release_note_key(org_slug, release_slug), ReleaseNotePageData
    )


async def set_cached_release_note(
    cache: CacheManager,
    org_slug: str,
    release_slug: str,
    data: Any,
    ttl_seconds: int = RELEASE_NOTE_TTL,
) -> None:
    await cache.set(release_note_key(org_slug, release_slug), data, ttl_seconds)


async def invalidate_cached_release_note(
    cache: CacheManager, org_slug: str, release_slug: str
) -> None:
    """Drop one release note from both tiers (exact key, not a pattern)."""
    await cache.delete(release_note_key(org_slug, release_slug))


async def invalidate_organization_release_notes(
    cache: CacheManager, org_slug: str
) -> int:
    """Drop every cached release note of an organization."""
    pattern = CacheKey.release_note_pattern(org_slug)
    return await cache.invalidate_pattern(pattern.value)


async def get_or_load_release_note(
    cache: CacheManager,
    org_slug: str,
    release_slug: str,
    loader: Loader,
    ttl_seconds: int = RELEASE_NOTE_TTL,
) -> Any:
    """
    Serve a release note from cache, falling back to ``loader``.

    ``loader`` queries the source of truth and returns ``None`` when the
    note does not exist; misses are not cached.
    """
    return await cache.get_or_set(
        release_note_key(org_slug, release_slug), loader, ttl_seconds
    )
