"""
Cache Value Objects

Immutable value objects for the cache domain: keys, TTLs and
invalidation patterns.
"""

import re
from dataclasses import dataclass
from typing import Pattern

_REDIS_GLOB_SPECIALS = frozenset("?[]\\")


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Release note keys are built by plain concatenation, so slugs that
    themselves contain ":" can produce colliding keys.
    """

    value: str

    RELEASE_NOTE_PREFIX = "release_note"

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value:
            raise ValueError("Cache key cannot be empty")

    @classmethod
    def release_note(cls, org_slug: str, release_slug: str) -> "CacheKey":
        """Create release note cache key."""
        return cls(f"{cls.RELEASE_NOTE_PREFIX}:{org_slug}:{release_slug}")

    @classmethod
    def release_note_pattern(cls, org_slug: str) -> "KeyPattern":
        """Pattern matching every cached release note of an organization."""
        return KeyPattern(f"{cls.RELEASE_NOTE_PREFIX}:{org_slug}:*")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.
    """

    seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if isinstance(self.seconds, bool) or not isinstance(self.seconds, int):
            raise TypeError("TTL must be an integer number of seconds")
        if self.seconds <= 0:
            raise ValueError("TTL must be positive")

    @classmethod
    def minutes(cls, minutes: int) -> "TTL":
        """Create TTL from minutes."""
        return cls(minutes * 60)

    @classmethod
    def hours(cls, hours: int) -> "TTL":
        """Create TTL from hours."""
        return cls(hours * 3600)

    def clamp(self, ceiling: int) -> "TTL":
        """Return this TTL reduced to at most ``ceiling`` seconds."""
        return TTL(min(self.seconds, ceiling))

    def __int__(self) -> int:
        return self.seconds


@dataclass(frozen=True)
class KeyPattern:
    """
    Glob-style invalidation pattern.

    ``*`` is the only wildcard and matches zero or more characters. By
    default every other character is matched literally; ``legacy=True``
    leaves regex metacharacters untranslated, which makes ``.`` match any
    character and lets ``(`` or ``[`` change the meaning of the pattern.
    """

    value: str

    def to_regex(self, legacy: bool = False) -> Pattern[str]:
        """Compile the pattern into a regex matched against whole keys."""
        if legacy:
            return re.compile(self.value.replace("*", ".*"))
        parts = (re.escape(part) for part in self.value.split("*"))
        return re.compile(".*".join(parts))

    def to_redis_glob(self, legacy: bool = False) -> str:
        """Pattern for Redis ``SCAN MATCH`` selecting the same keys as ``to_regex``.

        Redis globs also treat ``?``, ``[...]`` and ``\\`` specially, so those
        are backslash-escaped unless ``legacy`` is set.
        """
        if legacy:
            return self.value
        return "".join(
            "\\" + char if char in _REDIS_GLOB_SPECIALS else char
            for char in self.value
        )

    def matches(self, key: str, legacy: bool = False) -> bool:
        """Check whether ``key`` is selected by this pattern."""
        return self.to_regex(legacy).fullmatch(key) is not None

    def __str__(self) -> str:
        return self.value
