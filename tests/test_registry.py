"""
Tests for node registries.
"""

import pytest

from policymesh.errors import InvalidIdentifier, NodeNotFound
from policymesh.node.registry import FileNodeRegistry, MemoryNodeRegistry, NodeInfo


@pytest.fixture(params=["memory", "file"])
def registry(request, tmp_path):
    if request.param == "memory":
        return MemoryNodeRegistry()
    return FileNodeRegistry(str(tmp_path))


class TestNodeRegistry:
    """Test node resolution"""

    @pytest.mark.asyncio
    async def test_resolve_by_name(self, registry):
        await registry.register(NodeInfo(name="n1", host="10.0.0.1", port=4000))
        info = await registry.resolve_node("n1")
        assert info.url == "http://10.0.0.1:4000"

    @pytest.mark.asyncio
    async def test_resolve_default(self, registry):
        await registry.register(NodeInfo(name="n1", host="localhost", port=4000))
        await registry.register(NodeInfo(name="n2", host="localhost", port=4001))
        await registry.set_default("n2")
        assert (await registry.resolve_node()).name == "n2"

    @pytest.mark.asyncio
    async def test_no_default(self, registry):
        with pytest.raises(NodeNotFound):
            await registry.resolve_node()

    @pytest.mark.asyncio
    async def test_unknown_node(self, registry):
        with pytest.raises(NodeNotFound) as exc_info:
            await registry.resolve_node("ghost")
        assert exc_info.value.node_name == "ghost"

    @pytest.mark.asyncio
    async def test_default_must_exist(self, registry):
        with pytest.raises(NodeNotFound):
            await registry.set_default("ghost")

    @pytest.mark.asyncio
    async def test_unregister_clears_default(self, registry):
        await registry.register(NodeInfo(name="n1", host="localhost", port=4000))
        await registry.set_default("n1")
        assert await registry.unregister("n1") is True
        assert await registry.unregister("n1") is False
        assert await registry.get_default() is None

    @pytest.mark.asyncio
    async def test_invalid_name(self, registry):
        with pytest.raises(InvalidIdentifier):
            await registry.resolve_node("../etc")


class TestFileNodeRegistry:
    """Test file-backed registry persistence"""

    @pytest.mark.asyncio
    async def test_persisted_between_instances(self, tmp_path):
        first = FileNodeRegistry(str(tmp_path))
        await first.register(NodeInfo(name="n1", host="localhost", port=4000))
        await first.set_default("n1")

        second = FileNodeRegistry(str(tmp_path))
        assert [n.name for n in await second.list_nodes()] == ["n1"]
        assert (await second.resolve_node()).port == 4000
