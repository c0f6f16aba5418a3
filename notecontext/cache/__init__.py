"""Caching and change notification."""

from .ttl_cache import TTLCache
from .notifier import ChangeNotifier, compute_checksum

__all__ = ["TTLCache", "ChangeNotifier", "compute_checksum"]
