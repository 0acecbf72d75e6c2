"""
Node registry implementations.

A registry resolves node names (or the default node) to the address of the
node's control channel.
"""

import json
import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from ..errors import InvalidIdentifier, NodeNotFound


logger = logging.getLogger(__name__)

NODE_NAME_PATTERN = re.compile(r'^[A-Za-z0-9_\-][A-Za-z0-9_.\-]{0,127}$')


def parse_node_name(name: str) -> str:
    """Validate a node name."""
    if not isinstance(name, str) or not NODE_NAME_PATTERN.match(name):
        raise InvalidIdentifier(f"Invalid node name: {name!r}", value=name)
    return name


@dataclass
class NodeInfo:
    """Address of a node's control channel."""

    name: str
    host: str
    port: int
    scheme: str = "http"
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        parse_node_name(self.name)

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'name': self.name,
            'host': self.host,
            'port': self.port,
            'scheme': self.scheme,
            'metadata': self.metadata
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NodeInfo':
        """Create from dictionary."""
        return cls(
            name=data['name'],
            host=data['host'],
            port=int(data['port']),
            scheme=data.get('scheme', 'http'),
            metadata=data.get('metadata', {})
        )


class NodeRegistry(ABC):
    """Abstract base class for node registries."""

    @abstractmethod
    async def register(self, info: NodeInfo) -> None:
        """Register or replace a node."""
        pass

    @abstractmethod
    async def unregister(self, name: str) -> bool:
        """Remove a node. Returns False if it was not registered."""
        pass

    @abstractmethod
    async def get_node(self, name: str) -> Optional[NodeInfo]:
        """Get node information by name."""
        pass

    @abstractmethod
    async def list_nodes(self) -> List[NodeInfo]:
        """List all registered nodes."""
        pass

    @abstractmethod
    async def set_default(self, name: str) -> None:
        """Mark a registered node as the default node."""
        pass

    @abstractmethod
    async def get_default(self) -> Optional[str]:
        """Name of the default node, if any."""
        pass

    async def resolve_node(self, name: Optional[str] = None) -> NodeInfo:
        """
        Resolve a node name, falling back to the default node.

        Raises:
            NodeNotFound: If no name is given and there is no default, or the
                node is not registered
        """
        if name is None:
            name = await self.get_default()
            if name is None:
                raise NodeNotFound("No node specified and no default node configured")

        info = await self.get_node(parse_node_name(name))
        if info is None:
            raise NodeNotFound(f"Node '{name}' not found", node_name=name)
        return info


class MemoryNodeRegistry(NodeRegistry):
    """In-memory node registry."""

    def __init__(self, nodes: Optional[List[NodeInfo]] = None):
        self._nodes: Dict[str, NodeInfo] = {}
        self._default: Optional[str] = None
        for info in nodes or []:
            self._nodes[info.name] = info

    async def register(self, info: NodeInfo) -> None:
        self._nodes[info.name] = info
        logger.info(f"Registered node {info.name} at {info.url}")

    async def unregister(self, name: str) -> bool:
        if self._nodes.pop(name, None) is None:
            return False
        if self._default == name:
            self._default = None
        return True

    async def get_node(self, name: str) -> Optional[NodeInfo]:
        return self._nodes.get(name)

    async def list_nodes(self) -> List[NodeInfo]:
        return list(self._nodes.values())

    async def set_default(self, name: str) -> None:
        if name not in self._nodes:
            raise NodeNotFound(f"Node '{name}' not found", node_name=name)
        self._default = name

    async def get_default(self) -> Optional[str]:
        return self._default


class FileNodeRegistry(NodeRegistry):
    """
    File-based node registry.

    Each node is a JSON document ``<state_dir>/nodes/<name>.json``; the
    default node name is kept in ``<state_dir>/default_node``.
    """

    def __init__(self, state_dir: str):
        self.state_dir = Path(state_dir)
        self.nodes_dir = self.state_dir / "nodes"
        self.nodes_dir.mkdir(parents=True, exist_ok=True)
        self._default_path = self.state_dir / "default_node"

    def _node_path(self, name: str) -> Path:
        return self.nodes_dir / f"{parse_node_name(name)}.json"

    async def register(self, info: NodeInfo) -> None:
        path = self._node_path(info.name)
        tmp_path = path.with_suffix(".json.tmp")
        async with aiofiles.open(tmp_path, 'w') as f:
            await f.write(json.dumps(info.to_dict(), indent=2))
        os.replace(tmp_path, path)
        logger.info(f"Registered node {info.name} at {info.url}")

    async def unregister(self, name: str) -> bool:
        path = self._node_path(name)
        if not path.exists():
            return False
        path.unlink()
        if await self.get_default() == name:
            self._default_path.unlink()
        logger.info(f"Unregistered node {name}")
        return True

    async def get_node(self, name: str) -> Optional[NodeInfo]:
        path = self._node_path(name)
        if not path.exists():
            return None
        return await self._load(path)

    async def list_nodes(self) -> List[NodeInfo]:
        nodes = []
        for path in sorted(self.nodes_dir.glob("*.json")):
            try:
                nodes.append(await self._load(path))
            except NodeNotFound as e:
                logger.warning(f"Skipping unreadable node entry {path}: {e}")
        return nodes

    async def set_default(self, name: str) -> None:
        if not self._node_path(name).exists():
            raise NodeNotFound(f"Node '{name}' not found", node_name=name)
        async with aiofiles.open(self._default_path, 'w') as f:
            await f.write(name)

    async def get_default(self) -> Optional[str]:
        if not self._default_path.exists():
            return None
        async with aiofiles.open(self._default_path, 'r') as f:
            name = (await f.read()).strip()
        return name or None

    async def _load(self, path: Path) -> NodeInfo:
        try:
            async with aiofiles.open(path, 'r') as f:
                return NodeInfo.from_dict(json.loads(await f.read()))
        except (OSError, ValueError, KeyError, InvalidIdentifier) as e:
            raise NodeNotFound(f"Node entry {path.name} is unreadable: {e}", cause=e)
