"""
Tests for the role hierarchy snapshot and its process-wide cache.
"""
from uuid import uuid4

import pytest

from roleguard.core.hierarchy_cache import HierarchyCache, RoleHierarchy, RoleNode


def chain(*names):
    """Build nodes where each name's parent is the next name."""
    ids = {name: uuid4() for name in names}
    nodes = []
    for index, name in enumerate(names):
        parent = names[index + 1] if index + 1 < len(names) else None
        nodes.append(RoleNode(id=ids[name], name=name, parent_id=ids[parent] if parent else None))
    return nodes, ids


class TestRoleHierarchy:

    def test_ancestors_nearest_first(self):
        nodes, ids = chain("ROLE_A", "ROLE_B", "ROLE_C")
        hierarchy = RoleHierarchy(nodes)

        assert hierarchy.ancestors(ids["ROLE_A"]) == (ids["ROLE_B"], ids["ROLE_C"])
        assert hierarchy.ancestors(ids["ROLE_B"]) == (ids["ROLE_C"],)
        assert hierarchy.ancestors(ids["ROLE_C"]) == ()

    def test_unknown_role_has_no_ancestors(self):
        nodes, _ = chain("ROLE_A", "ROLE_B")
        assert RoleHierarchy(nodes).ancestors(uuid4()) == ()

    def test_cycle_terminates(self):
        a, b, c = uuid4(), uuid4(), uuid4()
        hierarchy = RoleHierarchy([
            RoleNode(id=a, name="ROLE_A", parent_id=b),
            RoleNode(id=b, name="ROLE_B", parent_id=c),
            RoleNode(id=c, name="ROLE_C", parent_id=a),
        ])

        assert set(hierarchy.ancestors(a)) == {b, c}
        assert hierarchy.expand_names(["ROLE_A"]) == {"ROLE_A", "ROLE_B", "ROLE_C"}

    def test_self_parent_terminates(self):
        a = uuid4()
        hierarchy = RoleHierarchy([RoleNode(id=a, name="ROLE_A", parent_id=a)])
        assert hierarchy.ancestors(a) == ()

    def test_dangling_parent_stops_walk(self):
        a = uuid4()
        hierarchy = RoleHierarchy([RoleNode(id=a, name="ROLE_A", parent_id=uuid4())])
        assert hierarchy.ancestors(a) == ()

    def test_expand_names_keeps_unknown_names(self):
        nodes, _ = chain("ROLE_A", "ROLE_B")
        hierarchy = RoleHierarchy(nodes)
        assert hierarchy.expand_names(["ROLE_A", "ROLE_LEGACY"]) == {"ROLE_A", "ROLE_B", "ROLE_LEGACY"}

    def test_inherited_excludes_direct_roles(self):
        nodes, ids = chain("ROLE_A", "ROLE_B", "ROLE_C")
        hierarchy = RoleHierarchy(nodes)

        inherited = hierarchy.inherited([ids["ROLE_A"], ids["ROLE_B"]])

        assert [node.name for node in inherited] == ["ROLE_C"]

    def test_inherited_deduplicates_shared_ancestors(self):
        root, left, right = uuid4(), uuid4(), uuid4()
        hierarchy = RoleHierarchy([
            RoleNode(id=root, name="ROLE_ROOT"),
            RoleNode(id=left, name="ROLE_LEFT", parent_id=root),
            RoleNode(id=right, name="ROLE_RIGHT", parent_id=root),
        ])

        inherited = hierarchy.inherited([left, right])

        assert [node.id for node in inherited] == [root]


class TestHierarchyCache:

    @pytest.mark.asyncio
    async def test_populates_once_until_invalidated(self):
        nodes, _ = chain("ROLE_A", "ROLE_B")
        calls = []

        async def loader():
            calls.append(1)
            return nodes

        cache = HierarchyCache()
        assert cache.is_warm is False

        first = await cache.get_or_populate(loader)
        second = await cache.get_or_populate(loader)

        assert first is second
        assert len(calls) == 1
        assert cache.is_warm is True

        cache.invalidate()
        assert cache.is_warm is False

        await cache.get_or_populate(loader)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_snapshot_loaded_during_invalidation_is_not_stored(self):
        nodes, _ = chain("ROLE_A", "ROLE_B")
        cache = HierarchyCache()

        async def loader():
            cache.invalidate()
            return nodes

        snapshot = await cache.get_or_populate(loader)

        assert len(snapshot) == 2
        assert cache.is_warm is False

    @pytest.mark.asyncio
    async def test_ttl_expires_snapshot(self):
        nodes, _ = chain("ROLE_A")
        now = [0.0]
        cache = HierarchyCache(ttl_seconds=30, clock=lambda: now[0])

        async def loader():
            return nodes

        await cache.get_or_populate(loader)
        now[0] = 29.0
        assert cache.is_warm is True
        now[0] = 30.0
        assert cache.is_warm is False

    def test_prime_stores_snapshot(self):
        nodes, ids = chain("ROLE_A", "ROLE_B")
        cache = HierarchyCache()

        snapshot = cache.prime(nodes)

        assert cache.is_warm is True
        assert snapshot.get_by_name("ROLE_A").id == ids["ROLE_A"]
