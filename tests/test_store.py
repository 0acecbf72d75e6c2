"""
Tests for node-side policy stores.
"""

import pytest

from policymesh.abac.expr import parse
from policymesh.abac.types import Action, Policy, Resource, path_for
from policymesh.errors import StoreError
from policymesh.node.store import FilePolicyStore, MemoryPolicyStore


ECHO = path_for(Resource("echoer"), Action.default())
ECHO_READ = path_for(Resource("echoer"), Action("read"))
OTHER = path_for(Resource("other"), Action.default())


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryPolicyStore()
    return FilePolicyStore(str(tmp_path / "policies"))


class TestPolicyStore:
    """Test policy store semantics shared by all backends"""

    @pytest.mark.asyncio
    async def test_put_and_get(self, store):
        assert await store.put(ECHO, Policy(parse("true"))) is False
        assert await store.get(ECHO) == Policy(parse("true"))

    @pytest.mark.asyncio
    async def test_put_replaces_without_merge(self, store):
        await store.put(ECHO, Policy(parse("(= a 1)")))
        assert await store.put(ECHO, Policy(parse("(= b 2)"))) is True
        assert await store.get(ECHO) == Policy(parse("(= b 2)"))
        assert len(await store.list()) == 1

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get(ECHO) is None

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.put(ECHO, Policy(parse("true")))
        assert await store.delete(ECHO) is True
        assert await store.delete(ECHO) is False
        assert await store.get(ECHO) is None

    @pytest.mark.asyncio
    async def test_list_by_resource(self, store):
        await store.put(ECHO, Policy(parse("true")))
        await store.put(ECHO_READ, Policy(parse("false")))
        await store.put(OTHER, Policy(parse("true")))

        assert set(await store.list()) == {ECHO, ECHO_READ, OTHER}
        assert set(await store.list(Resource("echoer"))) == {ECHO, ECHO_READ}
        assert await store.list(Resource("missing")) == {}


class TestFilePolicyStore:
    """Test file-backed persistence"""

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        directory = str(tmp_path / "policies")
        await FilePolicyStore(directory).put(ECHO, Policy(parse('(= subject.role "admin")')))

        reopened = FilePolicyStore(directory)
        assert await reopened.get(ECHO) == Policy(parse('(= subject.role "admin")'))

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path):
        store = FilePolicyStore(str(tmp_path))
        await store.put(ECHO, Policy(parse("true")))
        (tmp_path / "echoer" / "handle_message.json").write_bytes(b'{"expression": ')

        with pytest.raises(StoreError):
            await store.get(ECHO)
