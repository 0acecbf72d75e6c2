"""
Policy node control channel.

Serves the node's policy store over HTTP. The store key for a request is
computed with the same path_for derivation the client uses to build the
request route.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from aiohttp import web

from ..abac.types import Action, Policy, PolicyPath, Resource, path_for
from ..errors import (
    ExpressionError, InvalidIdentifier, PolicyMeshError, StoreError
)
from .store import MemoryPolicyStore, PolicyStore


logger = logging.getLogger(__name__)


def ok_response(**fields: Any) -> web.Response:
    body: Dict[str, Any] = {"status": "ok"}
    body.update(fields)
    return web.json_response(body)


def error_response(status: int, code: str, message: str) -> web.Response:
    return web.json_response(
        {"status": "error", "code": code, "message": message},
        status=status
    )


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Translate policymesh errors into error envelopes."""
    try:
        return await handler(request)
    except (InvalidIdentifier, ExpressionError) as e:
        logger.debug(f"Rejected {request.method} {request.path}: {e.message}")
        return error_response(400, e.code.value, e.message)
    except StoreError as e:
        logger.error(f"Store failure on {request.method} {request.path}: {e.message}")
        return error_response(500, e.code.value, e.message)
    except PolicyMeshError as e:
        logger.error(f"Request {request.method} {request.path} failed: {e.message}")
        return error_response(500, e.code.value, e.message)


class PolicyNode:
    """HTTP control channel exposing a node's policy store."""

    def __init__(self,
                 name: str,
                 store: Optional[PolicyStore] = None,
                 host: str = "127.0.0.1",
                 port: int = 0):
        """
        Initialize the node.

        Args:
            name: Node name
            store: Policy store, in-memory by default
            host: Listen address
            port: Listen port, 0 for an ephemeral port
        """
        self.name = name
        self.store = store or MemoryPolicyStore()
        self.host = host
        self.port = port
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._running = False

    def create_app(self) -> web.Application:
        """Build the aiohttp application serving this node."""
        app = web.Application(middlewares=[error_middleware])
        app.router.add_get("/health", self._health_handler)
        app.router.add_get("/policy", self._list_handler)
        app.router.add_get("/policy/{resource}", self._list_handler)
        app.router.add_post("/policy/{resource}/{action}", self._create_handler)
        app.router.add_get("/policy/{resource}/{action}", self._get_handler)
        app.router.add_delete("/policy/{resource}/{action}", self._delete_handler)
        return app

    async def start(self) -> None:
        """Start serving."""
        if self._running:
            logger.warning(f"Node {self.name} already running")
            return

        try:
            self._runner = web.AppRunner(self.create_app())
            await self._runner.setup()

            self._site = web.TCPSite(self._runner, self.host, self.port)
            await self._site.start()

            if self.port == 0 and self._runner.addresses:
                self.port = self._runner.addresses[0][1]

            self._running = True
            logger.info(f"Node {self.name} listening on {self.host}:{self.port}")

        except Exception as e:
            logger.error(f"Failed to start node {self.name}: {e}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop serving."""
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None
        if self._running:
            self._running = False
            logger.info(f"Node {self.name} stopped")

    async def serve_forever(self) -> None:
        """Start and serve until cancelled."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    @staticmethod
    def _policy_path(request: web.Request) -> PolicyPath:
        resource = Resource.parse(request.match_info["resource"])
        action = Action.parse(request.match_info["action"])
        return path_for(resource, action)

    async def _health_handler(self, request: web.Request) -> web.Response:
        return ok_response(node=self.name)

    async def _create_handler(self, request: web.Request) -> web.Response:
        path = self._policy_path(request)
        policy = Policy.from_json(await request.read())
        replaced = await self.store.put(path, policy)
        logger.info(f"Node {self.name} stored policy {path}: {policy.expression}")
        return ok_response(path=path.value, replaced=replaced)

    async def _get_handler(self, request: web.Request) -> web.Response:
        path = self._policy_path(request)
        policy = await self.store.get(path)
        if policy is None:
            return error_response(404, "not_found", f"No policy stored at {path}")
        return ok_response(path=path.value, policy=policy.to_dict())

    async def _delete_handler(self, request: web.Request) -> web.Response:
        path = self._policy_path(request)
        if not await self.store.delete(path):
            return error_response(404, "not_found", f"No policy stored at {path}")
        logger.info(f"Node {self.name} deleted policy {path}")
        return ok_response(path=path.value)

    async def _list_handler(self, request: web.Request) -> web.Response:
        resource = None
        if "resource" in request.match_info:
            resource = Resource.parse(request.match_info["resource"])
        policies = await self.store.list(resource)
        return ok_response(policies={
            path.value: policy.to_dict() for path, policy in policies.items()
        })
