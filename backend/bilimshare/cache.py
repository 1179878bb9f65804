"""
Snapshot cache with invalidation by entity key.

Each process keeps its latest (snapshot, view model) pair. Version counters
for the entity keys live in Django's cache framework, so an invalidation in
one worker makes every worker rebuild on its next read. A rebuild always
re-reads all four collections; the keys only decide *whether* to rebuild.

The pair is swapped as a whole under a lock: a reader sees the old pair
until the new one is completely built.
"""
import logging
import threading
import time

from django.conf import settings
from django.core.cache import cache as shared_cache

from .fetcher import fetch_snapshot
from .store import gateway as default_gateway
from .viewmodel import build_view_model

logger = logging.getLogger(__name__)

ENTITY_KEYS = ('posts', 'users', 'comments', 'likes')
VERSION_PREFIX = 'bilimshare:version:'


class FeedCache:
    def __init__(self, gateway=None, backend=None, max_age=None):
        self.gateway = gateway or default_gateway
        self.backend = backend or shared_cache
        self._max_age = max_age
        self._lock = threading.Lock()
        self._entry = None
        self._built_at = 0.0
        self._versions = None
        self.last_error = None

    @property
    def max_age(self):
        if self._max_age is not None:
            return self._max_age
        return settings.BILIMSHARE['SNAPSHOT_MAX_AGE']

    def _read_versions(self):
        keys = [VERSION_PREFIX + key for key in ENTITY_KEYS]
        stored = self.backend.get_many(keys)
        return tuple(stored.get(k, 0) for k in keys)

    def invalidate(self, *keys):
        """Mark entity keys as changed. No keys means all of them."""
        for key in keys or ENTITY_KEYS:
            if key not in ENTITY_KEYS:
                raise ValueError(f"Unknown entity key: {key}")
            version_key = VERSION_PREFIX + key
            self.backend.add(version_key, 0, timeout=None)
            try:
                self.backend.incr(version_key)
            except ValueError:
                # evicted between add() and incr()
                self.backend.set(version_key, 1, timeout=None)
        logger.debug(f"Invalidated {', '.join(keys or ENTITY_KEYS)}")

    def is_stale(self):
        if self._entry is None:
            return True
        if self.max_age and time.monotonic() - self._built_at > self.max_age:
            return True
        return self._read_versions() != self._versions

    def refresh(self):
        """
        Run a full fetch cycle and swap in the result.

        Returns False if the cycle failed; the previous pair stays in place.
        """
        versions = self._read_versions()
        try:
            snapshot = fetch_snapshot(self.gateway)
        except Exception as e:
            self.last_error = e
            logger.error(f"Snapshot refresh failed, keeping previous view: {e}")
            return False

        view_model = build_view_model(snapshot)
        with self._lock:
            self._entry = (snapshot, view_model)
            self._built_at = time.monotonic()
            self._versions = versions
            self.last_error = None
        return True

    def current(self):
        """
        Return the current (snapshot, view model) pair, rebuilding when stale.

        Raises the fetch fault if no pair has ever been built.
        """
        if self.is_stale():
            if not self.refresh() and self._entry is None:
                raise self.last_error
        with self._lock:
            return self._entry

    def view_model(self):
        return self.current()[1]

    def reset(self):
        """Drop the local pair and the shared versions."""
        with self._lock:
            self._entry = None
            self._versions = None
            self.last_error = None
        self.backend.delete_many([VERSION_PREFIX + key for key in ENTITY_KEYS])


feed_cache = FeedCache()
