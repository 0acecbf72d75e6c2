"""
Package rpc implements the client side of the policy distribution protocol.
"""

from .client import (
    GET,
    POST,
    DELETE,
    Response,
    Session,
    RpcClient
)

__all__ = [
    'GET',
    'POST',
    'DELETE',
    'Response',
    'Session',
    'RpcClient'
]
