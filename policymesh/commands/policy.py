"""
Policy commands.

Each command parses and validates all of its input before touching the
network, resolves the target node, and performs exactly one request.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..abac.expr import parse
from ..abac.types import (
    POLICY_ROUTE_PREFIX, Action, Policy, PolicyPath, Resource, path_for
)
from ..core.config import Config
from ..errors import MalformedExpression, ProtocolError
from ..node.registry import FileNodeRegistry, NodeRegistry
from ..rpc.client import DELETE, GET, POST, RpcClient


logger = logging.getLogger(__name__)


@dataclass
class CommandContext:
    """Explicit configuration threaded into every command."""
    config: Config = field(default_factory=Config)
    registry: Optional[NodeRegistry] = None

    def __post_init__(self):
        if self.registry is None:
            self.registry = FileNodeRegistry(str(self.config.state_dir))

    def rpc(self) -> RpcClient:
        return RpcClient(self.registry, self.config)


def _parse_action(action: Optional[str]) -> Action:
    if action is None:
        return Action.default()
    return Action.parse(action)


async def create_policy(ctx: CommandContext,
                        resource: str,
                        action: Optional[str],
                        expression: str,
                        node: Optional[str] = None) -> PolicyPath:
    """
    Create (or replace) the policy for a resource and action on a node.

    Args:
        ctx: Command context
        resource: Resource name
        action: Action name, ``handle_message`` when None
        expression: Policy expression text
        node: Target node name, the default node when None

    Returns:
        PolicyPath: The path the policy was stored under
    """
    policy_path = path_for(Resource.parse(resource), _parse_action(action))
    policy = Policy(parse(expression))

    await ctx.rpc().request(node, POST, policy_path, policy)
    logger.info(f"Created policy {policy_path}: {policy.expression}")
    return policy_path


async def get_policy(ctx: CommandContext,
                     resource: str,
                     action: Optional[str] = None,
                     node: Optional[str] = None) -> Policy:
    """Read the policy stored for a resource and action."""
    policy_path = path_for(Resource.parse(resource), _parse_action(action))
    envelope = await ctx.rpc().request(node, GET, policy_path)
    return _policy_from_envelope(envelope.get("policy"))


async def delete_policy(ctx: CommandContext,
                        resource: str,
                        action: Optional[str] = None,
                        node: Optional[str] = None) -> PolicyPath:
    """Remove the policy stored for a resource and action."""
    policy_path = path_for(Resource.parse(resource), _parse_action(action))
    await ctx.rpc().request(node, DELETE, policy_path)
    logger.info(f"Deleted policy {policy_path}")
    return policy_path


async def list_policies(ctx: CommandContext,
                        resource: Optional[str] = None,
                        node: Optional[str] = None) -> Dict[PolicyPath, Policy]:
    """List the policies stored on a node, optionally for one resource."""
    route = POLICY_ROUTE_PREFIX
    if resource is not None:
        route = f"{POLICY_ROUTE_PREFIX}/{Resource.parse(resource).value}"

    envelope = await ctx.rpc().request(node, GET, route)
    policies = envelope.get("policies")
    if not isinstance(policies, dict):
        raise ProtocolError("Policy listing is missing from the node's response")
    return {PolicyPath(path): _policy_from_envelope(data) for path, data in policies.items()}


def _policy_from_envelope(data: Any) -> Policy:
    try:
        return Policy.from_dict(data)
    except MalformedExpression as e:
        raise ProtocolError(f"Node returned a malformed policy: {e.message}", cause=e)
