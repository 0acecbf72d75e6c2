"""
Shared fixtures for policymesh tests.
"""

import asyncio
import socket

import pytest
import pytest_asyncio

from policymesh.commands import CommandContext
from policymesh.core.config import Config
from policymesh.node import MemoryNodeRegistry, NodeInfo, PolicyNode


def free_port() -> int:
    """Return a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def config(tmp_path):
    """Client configuration with a short timeout"""
    return Config(state_dir=tmp_path / "state", timeout=5.0)


@pytest_asyncio.fixture
async def node():
    """A running policy node with an in-memory store"""
    instance = PolicyNode("alpha", host="127.0.0.1", port=0)
    await instance.start()
    yield instance
    await instance.stop()


@pytest_asyncio.fixture
async def registry(node):
    """Registry knowing the running node (as default) and an offline one"""
    reg = MemoryNodeRegistry()
    await reg.register(NodeInfo(name="alpha", host="127.0.0.1", port=node.port))
    await reg.register(NodeInfo(name="offline", host="127.0.0.1", port=free_port()))
    await reg.set_default("alpha")
    return reg


@pytest.fixture
def ctx(config, registry):
    return CommandContext(config=config, registry=registry)


@pytest_asyncio.fixture
async def silent_server():
    """A TCP server that accepts connections and never answers"""
    async def handle(reader, writer):
        # Read until the client goes away, never answering
        await reader.read()
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    yield server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()
