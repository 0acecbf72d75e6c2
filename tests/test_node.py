"""
Tests for the policy node control channel.
"""

import sys

import aiohttp
import pytest

from policymesh.abac.expr import parse
from policymesh.abac.types import Action, Policy, Resource, path_for


def _url(node, route):
    return f"http://127.0.0.1:{node.port}{route}"


class TestPolicyNode:
    """Test the node's HTTP surface directly"""

    @pytest.mark.asyncio
    async def test_health(self, node):
        async with aiohttp.ClientSession() as http:
            async with http.get(_url(node, "/health")) as resp:
                assert resp.status == 200
                assert await resp.json() == {"status": "ok", "node": "alpha"}

    @pytest.mark.asyncio
    async def test_create_stores_under_derived_path(self, node):
        body = Policy(parse('(= subject.role "admin")')).to_json()
        async with aiohttp.ClientSession() as http:
            async with http.post(_url(node, "/policy/echoer/handle_message"), data=body) as resp:
                assert resp.status == 200
                data = await resp.json()

        assert data == {"status": "ok", "path": "/policy/echoer/handle_message", "replaced": False}
        stored = await node.store.get(path_for(Resource("echoer"), Action.default()))
        assert stored == Policy(parse('(= subject.role "admin")'))

    @pytest.mark.asyncio
    async def test_malformed_body_is_rejected(self, node):
        async with aiohttp.ClientSession() as http:
            async with http.post(_url(node, "/policy/echoer/handle_message"), data=b'{"expression": 1}') as resp:
                assert resp.status == 400
                data = await resp.json()

        assert data["status"] == "error"
        assert data["code"] == "malformed_expression"
        assert await node.store.list() == {}

    @pytest.mark.asyncio
    async def test_invalid_identifier_is_rejected(self, node):
        async with aiohttp.ClientSession() as http:
            async with http.get(_url(node, "/policy/bad%20name/read")) as resp:
                assert resp.status == 400
                assert (await resp.json())["code"] == "invalid_identifier"

    @pytest.mark.asyncio
    async def test_missing_policy(self, node):
        async with aiohttp.ClientSession() as http:
            async with http.get(_url(node, "/policy/echoer/handle_message")) as resp:
                assert resp.status == 404
                assert (await resp.json())["code"] == "not_found"

    @pytest.mark.skipif(not hasattr(sys, "set_int_max_str_digits"), reason="no integer digit limit")
    @pytest.mark.asyncio
    async def test_oversized_integer_is_rejected(self, node):
        body = b'{"expression": {"t": "int", "v": ' + b"1" * 5000 + b"}}"
        async with aiohttp.ClientSession() as http:
            async with http.post(_url(node, "/policy/echoer/handle_message"), data=body) as resp:
                assert resp.status == 400
                data = await resp.json()

        assert data["code"] == "malformed_expression"
        assert await node.store.list() == {}
