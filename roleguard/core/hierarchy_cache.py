"""
Process-wide cache of the role hierarchy.

The hierarchy is an adjacency list (each role stores its parent id). A
``RoleHierarchy`` snapshot is built from every role row and memoizes each
role's ancestor chain. ``HierarchyCache`` holds the current snapshot,
populates it lazily from a loader, and drops it on invalidation.
"""
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from roleguard.core.config import settings
from roleguard.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RoleNode:
    """Minimal role record held by the hierarchy snapshot."""
    id: UUID
    name: str
    parent_id: Optional[UUID] = None
    description: Optional[str] = None


class RoleHierarchy:
    """
    Immutable snapshot of the role forest.

    Ancestor walks are iterative and keep a visited set, so a corrupted
    (cyclic) hierarchy in the store still terminates.
    """

    def __init__(self, nodes: Iterable[RoleNode]):
        self._by_id: Dict[UUID, RoleNode] = {node.id: node for node in nodes}
        self._by_name: Dict[str, RoleNode] = {node.name: node for node in self._by_id.values()}
        self._ancestors: Dict[UUID, Tuple[UUID, ...]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, role_id: object) -> bool:
        return role_id in self._by_id

    def get(self, role_id: UUID) -> Optional[RoleNode]:
        return self._by_id.get(role_id)

    def get_by_name(self, name: str) -> Optional[RoleNode]:
        return self._by_name.get(name)

    def ancestors(self, role_id: UUID) -> Tuple[UUID, ...]:
        """
        Strict ancestors of a role, nearest first.

        Unknown role ids have no ancestors.
        """
        with self._lock:
            cached = self._ancestors.get(role_id)
        if cached is not None:
            return cached

        chain: List[UUID] = []
        visited: Set[UUID] = {role_id}
        node = self._by_id.get(role_id)

        while node is not None and node.parent_id is not None:
            if node.parent_id in visited:
                logger.warning(
                    "role_hierarchy_cycle_detected",
                    role_id=node.id,
                    role_name=node.name,
                    parent_id=node.parent_id,
                )
                break
            visited.add(node.parent_id)
            parent = self._by_id.get(node.parent_id)
            if parent is None:
                break
            chain.append(parent.id)
            node = parent

        result = tuple(chain)
        with self._lock:
            self._ancestors[role_id] = result
        return result

    def expand_names(self, role_names: Iterable[str]) -> Set[str]:
        """
        Resolve role names to themselves plus every inherited role name.

        Names with no matching role are kept as-is so a direct assignment is
        always honored.
        """
        resolved: Set[str] = set()
        for name in role_names:
            resolved.add(name)
            node = self._by_name.get(name)
            if node is None:
                continue
            for ancestor_id in self.ancestors(node.id):
                resolved.add(self._by_id[ancestor_id].name)
        return resolved

    def inherited(self, direct_role_ids: Iterable[UUID]) -> List[RoleNode]:
        """
        Union of strict ancestors of the direct roles, minus the direct roles.

        Order is first-seen; callers must not rely on it.
        """
        direct = list(dict.fromkeys(direct_role_ids))
        direct_set = set(direct)
        seen: Set[UUID] = set()
        result: List[RoleNode] = []
        for role_id in direct:
            for ancestor_id in self.ancestors(role_id):
                if ancestor_id in direct_set or ancestor_id in seen:
                    continue
                seen.add(ancestor_id)
                result.append(self._by_id[ancestor_id])
        return result


HierarchyLoader = Callable[[], Awaitable[Iterable[RoleNode]]]


class HierarchyCache:
    """
    Get-or-populate cache holding a single ``RoleHierarchy`` snapshot.

    Invalidation bumps a generation counter; a snapshot loaded under an older
    generation is returned to its caller but never stored.
    """

    def __init__(self, ttl_seconds: float = 0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: Optional[RoleHierarchy] = None
        self._loaded_at = 0.0
        self._generation = 0

    @property
    def is_warm(self) -> bool:
        with self._lock:
            return self._current() is not None

    async def get_or_populate(self, loader: HierarchyLoader) -> RoleHierarchy:
        """
        Return the cached snapshot, loading it if the cache is cold.

        Args:
            loader: Coroutine function returning every role as a RoleNode
        """
        with self._lock:
            snapshot = self._current()
            generation = self._generation
        if snapshot is not None:
            return snapshot

        snapshot = RoleHierarchy(await loader())

        with self._lock:
            if generation == self._generation:
                self._snapshot = snapshot
                self._loaded_at = self._clock()
        logger.debug("role_hierarchy_cache_populated", roles=len(snapshot))
        return snapshot

    def prime(self, nodes: Iterable[RoleNode]) -> RoleHierarchy:
        """Store a snapshot built from ``nodes`` directly."""
        snapshot = RoleHierarchy(nodes)
        with self._lock:
            self._generation += 1
            self._snapshot = snapshot
            self._loaded_at = self._clock()
        return snapshot

    def invalidate(self) -> None:
        """Drop the cached snapshot."""
        with self._lock:
            self._generation += 1
            self._snapshot = None
        logger.info("role_hierarchy_cache_invalidated")

    def _current(self) -> Optional[RoleHierarchy]:
        # Caller holds the lock.
        if self._snapshot is None:
            return None
        if self.ttl_seconds and self._clock() - self._loaded_at >= self.ttl_seconds:
            self._snapshot = None
        return self._snapshot


# Singleton cache instance
hierarchy_cache = HierarchyCache(ttl_seconds=settings.role_hierarchy_cache_ttl_seconds)


def get_hierarchy_cache() -> HierarchyCache:
    """
    Get the process-wide hierarchy cache.

    Returns:
        HierarchyCache singleton
    """
    return hierarchy_cache
