"""
Package commands implements the policy commands run against nodes.
"""

from .policy import (
    CommandContext,
    create_policy,
    get_policy,
    delete_policy,
    list_policies
)

__all__ = [
    'CommandContext',
    'create_policy',
    'get_policy',
    'delete_policy',
    'list_policies'
]
