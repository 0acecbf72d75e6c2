"""
Package node provides the node collaborator side of policy distribution:
node name resolution, the node's policy store and its control channel.
"""

from .registry import (
    NodeInfo,
    NodeRegistry,
    MemoryNodeRegistry,
    FileNodeRegistry,
    parse_node_name
)

from .store import (
    PolicyStore,
    MemoryPolicyStore,
    FilePolicyStore
)

from .server import PolicyNode

__all__ = [
    'NodeInfo',
    'NodeRegistry',
    'MemoryNodeRegistry',
    'FileNodeRegistry',
    'parse_node_name',
    'PolicyStore',
    'MemoryPolicyStore',
    'FilePolicyStore',
    'PolicyNode'
]
