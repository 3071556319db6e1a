"""
Target scope cache.

Resolving the scope of an iSCSI target (volume scoped vs group scoped) can be an
expensive query, so resolved scopes are remembered for the lifetime of the
process. Entries are never evicted: the number of targets is bounded by the
active sessions on the host.
"""

import logging
import threading
from typing import MutableMapping, Optional


class TargetTypeCache:
    """Thread-safe mapping of target name to target scope.

    Args:
        storage: Backing mapping (a new dict by default); tests may pass a
                 pre-seeded mapping
        lock: Lock guarding the mapping (a new threading.Lock by default)

    Only the map access happens under the lock. Scope resolution itself is
    done by the caller outside of it.
    """

    def __init__(self, storage: Optional[MutableMapping[str, str]] = None, lock=None):
        self._storage = storage if storage is not None else {}
        self._lock = lock if lock is not None else threading.Lock()
        self.logger = logging.getLogger(__name__)

    def get_scope(self, target_name: str) -> str:
        """Return the cached scope of ``target_name``, or "" when unresolved."""
        with self._lock:
            return self._storage.get(target_name, "")

    def set_scope(self, target_name: str, scope: str) -> None:
        """Remember the scope of ``target_name``."""
        with self._lock:
            self._storage[target_name] = scope
        self.logger.debug("Cached target scope %s for %s", scope, target_name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._storage)


_cache_lock = threading.Lock()
_target_type_cache: Optional[TargetTypeCache] = None


def get_target_type_cache() -> TargetTypeCache:
    """Return the process-wide TargetTypeCache, creating it on first use."""
    global _target_type_cache
    with _cache_lock:
        if _target_type_cache is None:
            _target_type_cache = TargetTypeCache()
        return _target_type_cache


def reset_target_type_cache() -> None:
    """Drop the process-wide cache (used by tests)."""
    global _target_type_cache
    with _cache_lock:
        _target_type_cache = None
