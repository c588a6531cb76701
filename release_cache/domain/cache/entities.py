"""
Cache Domain Entities

Entries held by the in-process tier and the release note payload
cached for the public release page.
"""

import time
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from .value_objects import TTL


@dataclass
class CacheEntry:
    """
    In-process cache entry.

    ``expires_at`` is an absolute epoch timestamp in seconds; the entry is
    live while ``now <= expires_at``.
    """

    value: Any
    expires_at: float

    @classmethod
    def create(cls, value: Any, ttl: TTL, now: Optional[float] = None) -> "CacheEntry":
        """Create an entry expiring ``ttl`` seconds from ``now``."""
        if now is None:
            now = time.time()
        return cls(value=value, expires_at=now + ttl.seconds)

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check if entry has expired."""
        if now is None:
            now = time.time()
        return now > self.expires_at

    def remaining_seconds(self, now: Optional[float] = None) -> float:
        """Seconds until expiry (negative once expired)."""
        if now is None:
            now = time.time()
        return self.expires_at - now


class ReleaseNoteContent(BaseModel):
    """Published release note fields rendered by the public page."""

    model_config = ConfigDict(extra="ignore")

    title: str
    content_html: Optional[str] = None
    published_at: Optional[str] = None
    featured_image_url: Optional[str] = None


class OrganizationSummary(BaseModel):
    """Organization branding shown next to a release note."""

    model_config = ConfigDict(extra="ignore")

    name: str
    logo_url: Optional[str] = None


class ReleaseNotePageData(BaseModel):
    """Cached payload for one public release note page."""

    model_config = ConfigDict(extra="ignore")

    note: ReleaseNoteContent
    organization: OrganizationSummary
