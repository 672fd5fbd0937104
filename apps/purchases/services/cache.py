"""Short-lived cache for the sequential-contribution status."""

import logging

from django.conf import settings
from django.core.cache import caches
from django.db import transaction

logger = logging.getLogger(__name__)


class SequentialStatusCache:
    """
    Holds the last computed ``SequentialStatus`` for ``ttl`` seconds.

    Every purchase or contribution mutation must call ``invalidate()``.
    A ``ttl`` of 0 disables caching entirely.

    Args:
        backend: A Django cache backend; defaults to the ``default`` alias.
        ttl: Seconds to keep an entry; defaults to ``SEQUENTIAL_GATE_CACHE_TTL``.
    """

    KEY = 'purchases:sequential-status'

    def __init__(self, backend=None, ttl=None):
        self._backend = backend
        self.ttl = settings.SEQUENTIAL_GATE_CACHE_TTL if ttl is None else ttl

    @property
    def backend(self):
        if self._backend is None:
            self._backend = caches['default']
        return self._backend

    def get(self):
        if self.ttl <= 0:
            return None
        return self.backend.get(self.KEY)

    def set(self, status):
        if self.ttl > 0:
            self.backend.set(self.KEY, status, self.ttl)

    def invalidate(self):
        self.backend.delete(self.KEY)


def get_sequential_cache():
    return SequentialStatusCache()


def invalidate_sequential_cache(cache=None):
    """
    Drop the cached status now and again once the surrounding transaction
    commits, so a concurrent reader cannot re-cache pre-commit state.
    """
    cache = cache or get_sequential_cache()
    cache.invalidate()
    transaction.on_commit(cache.invalidate)
    logger.debug("Sequential status cache invalidated")
