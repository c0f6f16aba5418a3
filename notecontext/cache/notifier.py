"""
Checksum-gated change notification for notecontext.

Raw change signals from the host arrive in bursts. Each signal restarts a
per-key debounce timer; when the timer fires the watched source is recomputed,
fingerprinted, and listeners are told only if the fingerprint moved.
"""

import asyncio
import hashlib
import inspect
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import CacheComputeFailure, ContextWarning, record_warning
from ..rendering import content_projection
from .ttl_cache import TTLCache

Listener = Callable[[str, Any], None]


def compute_checksum(value: Any) -> str:
    """
    Calculate a stable SHA-256 fingerprint of a value's content projection.
    """
    projected = content_projection(value)
    canonical = json.dumps(projected, sort_keys=True, separators=(',', ':'), default=str)
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


@dataclass
class WatchedSource:
    """A recompute function registered for a cache key."""
    key: str
    compute_fn: Callable[[], Any]
    ttl_ms: Optional[int] = None


class ChangeNotifier:
    """
    Debounces raw change signals and notifies listeners on genuine content change.

    Compute functions may be plain functions or coroutine functions. A
    coroutine is awaited by refresh_async(), and driven on the host loop (or a
    private one when there is none) by the synchronous refresh() that the
    debounce timer calls from its own thread.
    """

    def __init__(self, cache: TTLCache, debounce_ms: int = 300,
                 timer_factory: Callable[..., Any] = threading.Timer,
                 checksum_fn: Callable[[Any], str] = compute_checksum,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize the notifier.

        Args:
            cache: Cache receiving recomputed values and their checksums
            debounce_ms: Quiet period before a burst of signals triggers a recompute
            timer_factory: Called as timer_factory(seconds, function, args=...);
                the result must provide start() and cancel()
            checksum_fn: Fingerprint function for recomputed values
            loop: Host event loop that coroutine compute functions run on
        """
        self.cache = cache
        self.debounce_ms = debounce_ms
        self.timer_factory = timer_factory
        self.checksum_fn = checksum_fn
        self.loop = loop
        self.warnings: List[ContextWarning] = []
        self._watched: Dict[str, WatchedSource] = {}
        self._listeners: Dict[str, List[Listener]] = {}
        self._timers: Dict[str, Any] = {}
        self._generations: Dict[str, int] = {}
        self._checksums: Dict[str, str] = {}
        self._detachers: Dict[str, List[Callable[[], None]]] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def _lock(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    def watch(self, key: str, compute_fn: Callable[[], Any], ttl_ms: Optional[int] = None) -> None:
        """Register the function (or coroutine function) that recomputes a key's value."""
        with self._lock(key):
            self._watched[key] = WatchedSource(key=key, compute_fn=compute_fn, ttl_ms=ttl_ms)

    def unwatch(self, key: str) -> None:
        """Stop watching a key and drop everything kept for it."""
        with self._lock(key):
            self._watched.pop(key, None)
            self._listeners.pop(key, None)
            self._generations.pop(key, None)
            self._checksums.pop(key, None)
            timer = self._timers.pop(key, None)
            if timer is not None:
                timer.cancel()
            detachers = self._detachers.pop(key, [])
        for detach in detachers:
            detach()
        with self._guard:
            self._locks.pop(key, None)

    def on_change(self, key: str, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called as listener(key, value) when a key's content changes.

        Returns:
            A function removing the listener again
        """
        with self._lock(key):
            self._listeners.setdefault(key, []).append(listener)

        def unregister() -> None:
            with self._lock(key):
                listeners = self._listeners.get(key, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unregister

    def attach(self, key: str, on_raw_change_signal: Callable[[Callable[[], None]], Callable[[], None]]) -> None:
        """
        Subscribe to a host change-signal source on behalf of a key.

        Args:
            key: The watched key the signals refer to
            on_raw_change_signal: Host registration function taking a callback
                and returning an unregister function
        """
        detach = on_raw_change_signal(lambda: self.signal(key))
        with self._lock(key):
            self._detachers.setdefault(key, []).append(detach)

    def signal(self, key: str) -> None:
        """Handle one raw change signal: cancel the pending timer and start a new one."""
        with self._lock(key):
            if key not in self._watched:
                logging.debug(f"Ignoring change signal for unwatched key: {key}")
                return
            generation = self._generations.get(key, 0) + 1
            self._generations[key] = generation
            pending = self._timers.pop(key, None)
            if pending is not None:
                pending.cancel()
            timer = self.timer_factory(self.debounce_ms / 1000.0, self._fire, args=(key, generation))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()

    def _fire(self, key: str, generation: int) -> None:
        with self._lock(key):
            if self._generations.get(key) != generation:
                return
            self._timers.pop(key, None)
        self.refresh(key)

    def prime(self, key: str) -> bool:
        """Compute the baseline value and checksum of a key without notifying."""
        return self.refresh(key)

    async def prime_async(self, key: str) -> bool:
        """Compute the baseline of a key from inside a running event loop."""
        return await self.refresh_async(key)

    def _begin(self, key: str) -> Tuple[Optional[WatchedSource], int]:
        with self._lock(key):
            watched = self._watched.get(key)
            generation = self._generations.get(key, 0)
        if watched is None:
            logging.warning(f"Refresh requested for unwatched key: {key}")
        return watched, generation

    def _failed(self, key: str, error: Exception) -> bool:
        record_warning(self.warnings, ContextWarning.from_error(CacheComputeFailure(key, error)))
        return False

    def _run_coroutine(self, coroutine) -> Any:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            coroutine.close()
            raise RuntimeError("refresh() cannot drive a coroutine from inside a running loop; "
                               "use refresh_async() or prime_async()")
        if self.loop is not None and self.loop.is_running():
            return asyncio.run_coroutine_threadsafe(coroutine, self.loop).result()
        return asyncio.run(coroutine)

    def refresh(self, key: str) -> bool:
        """
        Recompute a watched key and notify listeners if its checksum changed.

        Args:
            key: The watched key

        Returns:
            True if listeners were notified
        """
        watched, generation = self._begin(key)
        if watched is None:
            return False

        try:
            value = watched.compute_fn()
            if inspect.isawaitable(value):
                value = self._run_coroutine(value)
        except Exception as e:
            return self._failed(key, e)

        return self._apply(watched, generation, value)

    async def refresh_async(self, key: str) -> bool:
        """Recompute a watched key like refresh(), awaiting coroutine compute functions."""
        watched, generation = self._begin(key)
        if watched is None:
            return False

        try:
            value = watched.compute_fn()
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            return self._failed(key, e)

        return self._apply(watched, generation, value)

    def _apply(self, watched: WatchedSource, generation: int, value: Any) -> bool:
        key = watched.key
        with self._lock(key):
            if self._generations.get(key, 0) != generation:
                logging.debug(f"Discarding superseded recompute of {key}")
                return False

            checksum = self.checksum_fn(value)
            previous = self._checksums.get(key)
            if previous == checksum:
                return False

            self._checksums[key] = checksum
            self.cache.set(key, value, watched.ttl_ms, checksum)
            if previous is None:
                logging.debug(f"Baseline checksum recorded for {key}")
                return False

            logging.info(f"Content change detected for {key}")
            for listener in list(self._listeners.get(key, [])):
                try:
                    listener(key, value)
                except Exception as e:
                    logging.error(f"Change listener for {key} failed: {e}", exc_info=True)
            return True

    def checksum(self, key: str) -> Optional[str]:
        """Return the last recorded checksum of a key."""
        return self._checksums.get(key)

    def shutdown(self) -> None:
        """Cancel pending timers, detach from signal sources and drop all per-key state."""
        for key in list(self._watched) + list(self._detachers) + list(self._timers):
            self.unwatch(key)
        self._listeners.clear()
        self._checksums.clear()
        self._generations.clear()
        self.cache.clear()
        logging.info("Change notifier shut down")
