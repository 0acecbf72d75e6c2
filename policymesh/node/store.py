"""
Node-side policy store.

Policies are keyed by their PolicyPath. A put for an existing path replaces
the stored policy outright; there is no merge and no conditional write.
"""

import logging
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import aiofiles

from ..abac.types import Action, Policy, PolicyPath, Resource, path_for, resource_prefix
from ..errors import MalformedExpression, StoreError


logger = logging.getLogger(__name__)


class PolicyStore(ABC):
    """Abstract base class for policy storage."""

    @abstractmethod
    async def put(self, path: PolicyPath, policy: Policy) -> bool:
        """Store a policy, replacing any previous one. Returns True if one was replaced."""
        pass

    @abstractmethod
    async def get(self, path: PolicyPath) -> Optional[Policy]:
        """Get the policy stored under a path."""
        pass

    @abstractmethod
    async def delete(self, path: PolicyPath) -> bool:
        """Delete a policy. Returns False if none was stored."""
        pass

    @abstractmethod
    async def list(self, resource: Optional[Resource] = None) -> Dict[PolicyPath, Policy]:
        """List policies, optionally restricted to one resource."""
        pass


class MemoryPolicyStore(PolicyStore):
    """In-memory policy store implementation."""

    def __init__(self):
        self._policies: Dict[PolicyPath, Policy] = {}

    async def put(self, path: PolicyPath, policy: Policy) -> bool:
        replaced = path in self._policies
        self._policies[path] = policy
        return replaced

    async def get(self, path: PolicyPath) -> Optional[Policy]:
        return self._policies.get(path)

    async def delete(self, path: PolicyPath) -> bool:
        return self._policies.pop(path, None) is not None

    async def list(self, resource: Optional[Resource] = None) -> Dict[PolicyPath, Policy]:
        if resource is None:
            return dict(self._policies)
        prefix = resource_prefix(resource)
        return {p: policy for p, policy in self._policies.items() if p.value.startswith(prefix)}


class FilePolicyStore(PolicyStore):
    """
    File-based policy store.

    Each policy is kept in ``<storage_dir>/<resource>/<action>.json`` holding
    the policy's wire form. Writes go through a temporary file and an atomic
    rename, so readers never observe a partially written policy.
    """

    def __init__(self, storage_dir: str):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def _policy_file(self, path: PolicyPath) -> Path:
        resource, action = path.split()
        return self.storage_dir / resource.value / f"{action.value}.json"

    async def put(self, path: PolicyPath, policy: Policy) -> bool:
        target = self._policy_file(path)
        tmp = target.with_name(f".{uuid.uuid4().hex}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            replaced = target.exists()
            async with aiofiles.open(tmp, 'wb') as f:
                await f.write(policy.to_json())
            os.replace(tmp, target)
        except OSError as e:
            logger.error(f"Failed to store policy {path}: {e}")
            raise StoreError(f"Failed to store policy {path}", cause=e)
        return replaced

    async def get(self, path: PolicyPath) -> Optional[Policy]:
        target = self._policy_file(path)
        if not target.exists():
            return None
        return await self._load(target)

    async def delete(self, path: PolicyPath) -> bool:
        target = self._policy_file(path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreError(f"Failed to delete policy {path}", cause=e)
        return True

    async def list(self, resource: Optional[Resource] = None) -> Dict[PolicyPath, Policy]:
        if resource is None:
            resource_dirs = sorted(p for p in self.storage_dir.iterdir() if p.is_dir())
        else:
            resource_dirs = [self.storage_dir / resource.value]

        policies: Dict[PolicyPath, Policy] = {}
        for resource_dir in resource_dirs:
            if not resource_dir.is_dir():
                continue
            for policy_file in sorted(resource_dir.glob("*.json")):
                policy_path = path_for(Resource(resource_dir.name), _action_of(policy_file))
                policies[policy_path] = await self._load(policy_file)
        return policies

    async def _load(self, target: Path) -> Policy:
        try:
            async with aiofiles.open(target, 'rb') as f:
                return Policy.from_json(await f.read())
        except OSError as e:
            raise StoreError(f"Failed to read policy file {target}", cause=e)
        except MalformedExpression as e:
            raise StoreError(f"Corrupt policy file {target}: {e.message}", cause=e)


def _action_of(policy_file: Path) -> Action:
    return Action(policy_file.name[:-len(".json")])
