from .entities import (
    CacheEntry,
    OrganizationSummary,
    ReleaseNoteContent,
    ReleaseNotePageData,
)
from .value_objects import TTL, CacheKey, KeyPattern

__all__ = [
    "CacheEntry",
    "CacheKey",
    "KeyPattern",
    "OrganizationSummary",
    "ReleaseNoteContent",
    "ReleaseNotePageData",
    "TTL",
]
