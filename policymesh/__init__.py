"""
policymesh

Attribute-based access-control policies and their distribution to nodes.
"""

__version__ = "0.1.0"

from .abac import Action, Expr, Policy, PolicyPath, Resource, parse, path_for
from .commands import CommandContext, create_policy, delete_policy, get_policy, list_policies
from .core.config import Config

__all__ = [
    "Action",
    "Expr",
    "Policy",
    "PolicyPath",
    "Resource",
    "parse",
    "path_for",
    "CommandContext",
    "create_policy",
    "delete_policy",
    "get_policy",
    "list_policies",
    "Config",
]
