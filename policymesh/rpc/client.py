"""
RPC client for the policy distribution protocol.

Every exchange is one-shot: a Session is opened for a single node, carries
one request/response, and is closed on every exit path, including errors and
cancellation. Nothing is retried. Policy replacement is last-writer-wins on
the node, so a blind retry after an ambiguous failure could overwrite a newer
policy installed in the meantime.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import aiohttp

from ..abac.codec import decode_json
from ..abac.types import Policy, PolicyPath
from ..core.config import Config
from ..errors import (
    MalformedExpression, NodeUnreachable, ProtocolError, RemoteError, TransportError
)
from ..node.registry import NodeInfo, NodeRegistry


logger = logging.getLogger(__name__)

GET = "GET"
POST = "POST"
DELETE = "DELETE"


@dataclass
class Response:
    """Raw response from a node."""
    status: int
    body: bytes
    reason: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Session:
    """Scoped session to one node's control channel."""

    def __init__(self, node: NodeInfo, timeout: float):
        self.node = node
        self.timeout = timeout
        self._client: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> 'Session':
        self._client = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.close()

    async def send(self, method: str, route: str, body: Optional[Policy] = None) -> Response:
        """
        Send one request to the node.

        Args:
            method: HTTP method
            route: Request route, usually a PolicyPath
            body: Policy to send as the request body

        Returns:
            Response: Status and raw body of the node's answer

        Raises:
            NodeUnreachable: If the node refuses the connection or the
                exchange exceeds the timeout
            TransportError: On any other exchange failure
        """
        if self._client is None:
            raise TransportError("Session is not open")

        url = f"{self.node.url}{route}"
        data = body.to_json() if body is not None else None
        headers = {"Content-Type": "application/json"} if data is not None else None

        logger.debug(f"{method} {url} ({len(data) if data else 0} bytes)")
        try:
            async with self._client.request(method, url, data=data, headers=headers) as resp:
                payload = await resp.read()
                return Response(status=resp.status, body=payload, reason=resp.reason or "")
        except asyncio.TimeoutError as e:
            raise NodeUnreachable(
                f"Node '{self.node.name}' did not answer within {self.timeout}s",
                node_name=self.node.name, cause=e
            )
        except aiohttp.ClientConnectorError as e:
            raise NodeUnreachable(
                f"Node '{self.node.name}' is unreachable at {self.node.url}: {e}",
                node_name=self.node.name, cause=e
            )
        except aiohttp.ClientError as e:
            raise TransportError(f"Request to node '{self.node.name}' failed: {e}", cause=e)


class RpcClient:
    """Client issuing one-shot policy requests to nodes."""

    def __init__(self, registry: NodeRegistry, config: Optional[Config] = None):
        self.registry = registry
        self.config = config or Config()

    async def connect(self, node_name: Optional[str] = None) -> Session:
        """
        Resolve a node and prepare a session to it.

        The returned session is opened with ``async with``.

        Raises:
            NodeNotFound: If the node cannot be resolved
        """
        node = await self.registry.resolve_node(node_name or self.config.default_node)
        return Session(node, self.config.timeout)

    @staticmethod
    def check(response: Response) -> Dict[str, Any]:
        """
        Interpret a node's acknowledgement.

        Returns:
            The decoded success envelope

        Raises:
            RemoteError: If the node answered with a non-success status
            ProtocolError: If a success response cannot be decoded
        """
        if not response.ok:
            envelope = _decode_envelope(response.body)
            code = str(response.status)
            message = response.reason or f"HTTP {response.status}"
            if envelope is not None:
                if isinstance(envelope.get("code"), str):
                    code = envelope["code"]
                if isinstance(envelope.get("message"), str):
                    message = envelope["message"]
            raise RemoteError(response.status, code, message)

        envelope = _decode_envelope(response.body)
        if envelope is None or envelope.get("status") != "ok":
            raise ProtocolError(f"Undecodable response from node (status {response.status})")
        return envelope

    async def request(self,
                      node_name: Optional[str],
                      method: str,
                      route: Union[PolicyPath, str],
                      body: Optional[Policy] = None) -> Dict[str, Any]:
        """Open a session, send one request, close the session and check the answer."""
        session = await self.connect(node_name)
        async with session:
            response = await session.send(method, str(route), body)
        return self.check(response)


def _decode_envelope(body: bytes) -> Optional[Dict[str, Any]]:
    try:
        data = decode_json(body)
    except MalformedExpression:
        return None
    return data if isinstance(data, dict) else None
