"""
Resource, action and policy types, and the policy path derivation shared by
clients and nodes.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple
import re

from ..errors import InvalidIdentifier, MalformedExpression
from .codec import decode_json, encode_json, expr_from_dict, expr_to_dict
from .expr import Expr


NAME_PATTERN = re.compile(r'^[A-Za-z0-9_.\-]+$')
MAX_NAME_LENGTH = 255

POLICY_ROUTE_PREFIX = "/policy"

DEFAULT_ACTION = "handle_message"


def _validate_name(kind: str, value: str) -> str:
    if not isinstance(value, str):
        raise InvalidIdentifier(f"{kind} must be a string", value=None)
    if not value:
        raise InvalidIdentifier(f"{kind} must not be empty", value=value)
    if len(value) > MAX_NAME_LENGTH:
        raise InvalidIdentifier(
            f"{kind} must be at most {MAX_NAME_LENGTH} characters", value=value
        )
    if not NAME_PATTERN.match(value):
        raise InvalidIdentifier(
            f"{kind} '{value}' contains characters outside [A-Za-z0-9_.-]", value=value
        )
    # "." and ".." would be collapsed as URL path segments
    if value.strip(".") == "":
        raise InvalidIdentifier(f"{kind} must not consist only of dots", value=value)
    return value


class _Name:
    """Validated, immutable name compared by exact value."""

    __slots__ = ("_value",)
    kind = "name"

    def __init__(self, value: str):
        object.__setattr__(self, "_value", _validate_name(self.kind, value))

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @classmethod
    def parse(cls, text: str):
        return cls(text)

    @property
    def value(self) -> str:
        return self._value

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other) -> bool:
        if type(other) is type(self):
            return self._value == other._value
        return False

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._value))


class Resource(_Name):
    """Protected entity a policy governs."""

    __slots__ = ()
    kind = "Resource"


class Action(_Name):
    """Operation class a policy governs on a resource."""

    __slots__ = ()
    kind = "Action"

    @classmethod
    def default(cls) -> 'Action':
        return cls(DEFAULT_ACTION)


@dataclass(frozen=True)
class PolicyPath:
    """Canonical route and store key for a (resource, action) pair."""
    value: str

    def __str__(self) -> str:
        return self.value

    def split(self) -> Tuple[Resource, Action]:
        """Recover the (resource, action) pair this path was derived from."""
        prefix = POLICY_ROUTE_PREFIX + "/"
        if not self.value.startswith(prefix):
            raise InvalidIdentifier(f"Not a policy path: {self.value}", value=self.value)
        parts = self.value[len(prefix):].split("/")
        if len(parts) != 2:
            raise InvalidIdentifier(f"Not a policy path: {self.value}", value=self.value)
        return Resource(parts[0]), Action(parts[1])


def path_for(resource: Resource, action: Action) -> PolicyPath:
    """
    Derive the policy path for a resource and action.

    Neither name may contain '/', so distinct pairs always map to distinct paths.
    """
    return PolicyPath(f"{POLICY_ROUTE_PREFIX}/{resource.value}/{action.value}")


def resource_prefix(resource: Resource) -> str:
    """Path prefix shared by every policy of one resource."""
    return f"{POLICY_ROUTE_PREFIX}/{resource.value}/"


@dataclass(frozen=True)
class Policy:
    """
    Policy body: a single expression.

    The governed resource and action are carried by the request route, not
    by the body.
    """
    expression: Expr

    def __post_init__(self):
        if not isinstance(self.expression, Expr):
            raise TypeError("Policy expression must be an Expr")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire dictionary representation."""
        return {'expression': expr_to_dict(self.expression)}

    @classmethod
    def from_dict(cls, data: Any) -> 'Policy':
        """Create from the wire dictionary representation."""
        if not isinstance(data, dict) or set(data) != {'expression'}:
            raise MalformedExpression("policy body must be an object with a single 'expression' key")
        return cls(expression=expr_from_dict(data['expression']))

    def to_json(self) -> bytes:
        """Serialize to the wire form."""
        return encode_json(self.to_dict())

    @classmethod
    def from_json(cls, payload: bytes) -> 'Policy':
        """Deserialize from the wire form, rejecting anything malformed."""
        return cls.from_dict(decode_json(payload))
