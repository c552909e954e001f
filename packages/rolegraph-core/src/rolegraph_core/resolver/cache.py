"""Process-local, per-principal memoization of resolved Role Sets."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from rolegraph_core.resolver.models import RoleSet

logger = logging.getLogger(__name__)


class _KeyLock:
    """Per-principal lock plus the number of callers holding or waiting on it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class PrincipalRoleCache:
    """Lazily computed Role Set per principal with explicit invalidation.

    At most one resolution runs per principal at a time: concurrent
    callers for the same key wait on a per-key lock and then read the
    stored result. The entry map itself is guarded by a short global
    lock, so different principals resolve independently.

    An invalidation that arrives while a resolution is in flight bumps the
    key's generation; the stale result is still returned to its caller but
    is not stored.

    Per-key locks and generations only exist while a resolution for that
    key is in flight, so bookkeeping never outgrows the callers currently
    inside ``get``.
    """

    def __init__(
        self,
        loader: Callable[[str], RoleSet],
        max_entries: int | None = None,
    ) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self._loader = loader
        self._max_entries = max_entries
        self._entries: OrderedDict[str, RoleSet] = OrderedDict()
        # Both keyed only by principals with a caller inside get().
        self._generations: dict[str, int] = {}
        self._key_locks: dict[str, _KeyLock] = {}
        self._lock = threading.Lock()

    def get(self, principal_id: str) -> RoleSet:
        """Return the cached Role Set, resolving it on a miss."""
        cached = self._lookup(principal_id)
        if cached is not None:
            return cached

        with self._resolving(principal_id):
            # Another caller may have populated the entry while we waited.
            cached = self._lookup(principal_id)
            if cached is not None:
                return cached

            with self._lock:
                generation = self._generations.get(principal_id, 0)
            logger.debug("Role cache miss for principal %r", principal_id)
            role_set = self._loader(principal_id)

            with self._lock:
                if self._generations.get(principal_id, 0) == generation:
                    self._store(principal_id, role_set)
                else:
                    logger.debug(
                        "Discarding stale resolution for principal %r", principal_id
                    )
            return role_set

    def invalidate(self, principal_id: str) -> None:
        """Drop the entry so the next ``get`` resolves again."""
        with self._lock:
            self._entries.pop(principal_id, None)
            if principal_id in self._key_locks:
                self._bump(principal_id)
        logger.debug("Invalidated role cache for principal %r", principal_id)

    def clear(self) -> None:
        with self._lock:
            for key in self._key_locks:
                self._bump(key)
            self._entries.clear()
        logger.debug("Cleared principal role cache")

    def __contains__(self, principal_id: object) -> bool:
        with self._lock:
            return principal_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -- internals -------------------------------------------------------------

    def _lookup(self, principal_id: str) -> RoleSet | None:
        with self._lock:
            role_set = self._entries.get(principal_id)
            if role_set is not None:
                self._entries.move_to_end(principal_id)
        return role_set

    def _store(self, principal_id: str, role_set: RoleSet) -> None:
        # Caller holds self._lock.
        self._entries[principal_id] = role_set
        self._entries.move_to_end(principal_id)
        if self._max_entries is not None:
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted principal %r from role cache", evicted)

    def _bump(self, principal_id: str) -> None:
        # Caller holds self._lock.
        self._generations[principal_id] = self._generations.get(principal_id, 0) + 1

    @contextmanager
    def _resolving(self, principal_id: str) -> Iterator[None]:
        """Hold the per-key lock, dropping its bookkeeping once the last user leaves."""
        with self._lock:
            key_lock = self._key_locks.get(principal_id)
            if key_lock is None:
                key_lock = self._key_locks[principal_id] = _KeyLock()
            key_lock.users += 1
        try:
            with key_lock.lock:
                yield
        finally:
            with self._lock:
                key_lock.users -= 1
                if key_lock.users == 0:
                    del self._key_locks[principal_id]
                    self._generations.pop(principal_id, None)
