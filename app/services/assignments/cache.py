"""
TTL cache for resolved role mappings.

Reads of a user's role on a project happen on every authorized request, while
assignments change rarely. Entries are keyed by (user_id, project_id) and
always replaced as a whole value, so readers see either the old mapping or the
new one, never a mix.

Entries are invalidated explicitly when a role is assigned or removed and when
an organization's tier changes; the TTL only bounds staleness for writes made
by another process.
"""

import logging
import threading
import uuid as uuid_pkg
from collections.abc import Collection

from cachetools import TTLCache  # type: ignore[import-untyped]

from app.config.settings import settings
from app.roles.types import RoleMapping

logger = logging.getLogger(__name__)

CacheKey = tuple[uuid_pkg.UUID, uuid_pkg.UUID]


class RoleMappingCache:
    """Thread-safe TTL cache of RoleMapping values keyed by (user_id, project_id)."""

    def __init__(self, maxsize: int, ttl: int):
        self._cache: TTLCache[CacheKey, RoleMapping] = TTLCache(maxsize=maxsize, ttl=ttl)
        # TTLCache mutates internal state on reads (expiry), so every access is locked
        self._lock = threading.Lock()

    def get(self, user_id: uuid_pkg.UUID, project_id: uuid_pkg.UUID) -> RoleMapping | None:
        with self._lock:
            mapping = self._cache.get((user_id, project_id))
        if mapping is not None:
            logger.debug(f"Role cache HIT: {user_id}/{project_id}")
        return mapping

    def set(self, user_id: uuid_pkg.UUID, project_id: uuid_pkg.UUID, mapping: RoleMapping) -> None:
        with self._lock:
            self._cache[(user_id, project_id)] = mapping

    def invalidate(self, user_id: uuid_pkg.UUID, project_id: uuid_pkg.UUID) -> None:
        with self._lock:
            self._cache.pop((user_id, project_id), None)

    def invalidate_projects(self, project_ids: Collection[uuid_pkg.UUID]) -> int:
        """Drop every entry for the given projects. Returns the number removed."""
        with self._lock:
            stale = [key for key in self._cache.keys() if key[1] in project_ids]
            for key in stale:
                self._cache.pop(key, None)
        if stale:
            logger.info(f"Invalidated {len(stale)} cached role mappings")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


role_mapping_cache = RoleMappingCache(
    maxsize=settings.role_mapping_cache_size,
    ttl=settings.role_mapping_cache_ttl_seconds,
)
