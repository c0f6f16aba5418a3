"""
Cache entry model for notecontext.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """
    A memoized value with its freshness and content fingerprint.
    """
    value: Any
    computed_at: float
    ttl_ms: int
    checksum: str = ""

    def is_valid(self, now: float) -> bool:
        """An entry is valid while less than ttl_ms has elapsed since computed_at."""
        return (now - self.computed_at) * 1000 < self.ttl_ms
