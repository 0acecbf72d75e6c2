"""
Error taxonomy for policymesh.

Every failure raised by the library derives from PolicyMeshError and carries
a structured error code. Transport-level failures (the request may or may not
have reached the node) are kept apart from RemoteError (the node answered and
rejected the request) so callers can tell the two outcomes apart.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Structured error codes."""

    # Local validation errors
    INVALID_IDENTIFIER = "invalid_identifier"
    SYNTAX_ERROR = "syntax_error"
    MALFORMED_EXPRESSION = "malformed_expression"
    EVALUATION_ERROR = "evaluation_error"

    # Node resolution and transport errors
    NODE_NOT_FOUND = "node_not_found"
    NODE_UNREACHABLE = "node_unreachable"
    TRANSPORT_ERROR = "transport_error"
    PROTOCOL_ERROR = "protocol_error"

    # Errors reported by the node
    REMOTE_ERROR = "remote_error"
    NOT_FOUND = "not_found"
    STORAGE_ERROR = "storage_error"

    # Configuration errors
    INVALID_CONFIG = "invalid_config"


class PolicyMeshError(Exception):
    """
    Base exception class for all policymesh errors.

    Provides an error code, a human readable message and an optional
    underlying cause.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        cause: Optional[Exception] = None
    ):
        self.code = code
        self.message = message
        self.cause = cause

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "error": self.code.value,
            "error_description": self.message,
        }

        if self.cause:
            result["caused_by"] = str(self.cause)

        return result


class InvalidIdentifier(PolicyMeshError):
    """A resource or action name failed validation."""

    def __init__(self, message: str, value: Optional[str] = None, **kwargs):
        self.value = value
        super().__init__(ErrorCode.INVALID_IDENTIFIER, message, **kwargs)


class ExpressionError(PolicyMeshError):
    """Base class for expression failures."""


class ExprSyntaxError(ExpressionError):
    """
    Expression text is not accepted by the grammar.

    Carries the offending span as character offsets into the source text.
    """

    def __init__(self, message: str, text: str, start: int, end: int, **kwargs):
        self.text = text
        self.start = start
        self.end = end
        super().__init__(ErrorCode.SYNTAX_ERROR, message, **kwargs)

    @property
    def span(self):
        return (self.start, self.end)

    def __str__(self) -> str:
        return f"{self.message} at {self.start}..{self.end}"

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["span"] = [self.start, self.end]
        return result


class MalformedExpression(ExpressionError):
    """A serialized expression or policy could not be decoded."""

    def __init__(self, message: str, **kwargs):
        super().__init__(ErrorCode.MALFORMED_EXPRESSION, message, **kwargs)


class EvaluationError(ExpressionError):
    """An expression could not be evaluated against the given attributes."""

    def __init__(self, message: str, **kwargs):
        super().__init__(ErrorCode.EVALUATION_ERROR, message, **kwargs)


class NodeNotFound(PolicyMeshError):
    """The target node name (or the default node) is unknown."""

    def __init__(self, message: str, node_name: Optional[str] = None, **kwargs):
        self.node_name = node_name
        super().__init__(ErrorCode.NODE_NOT_FOUND, message, **kwargs)


class TransportError(PolicyMeshError):
    """
    The request/response exchange failed.

    The node may or may not have applied the request.
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.TRANSPORT_ERROR, **kwargs):
        super().__init__(code, message, **kwargs)


class NodeUnreachable(TransportError):
    """The node could not be reached or did not answer in time."""

    def __init__(self, message: str, node_name: Optional[str] = None, **kwargs):
        self.node_name = node_name
        super().__init__(message, code=ErrorCode.NODE_UNREACHABLE, **kwargs)


class ProtocolError(TransportError):
    """The node answered with a response that could not be decoded."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=ErrorCode.PROTOCOL_ERROR, **kwargs)


class RemoteError(PolicyMeshError):
    """The node explicitly rejected the request."""

    def __init__(self, status: int, code: str, message: str, **kwargs):
        self.status = status
        self.remote_code = code
        super().__init__(ErrorCode.REMOTE_ERROR, message, **kwargs)

    def __str__(self) -> str:
        return f"node rejected request ({self.status} {self.remote_code}): {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["status"] = self.status
        result["remote_code"] = self.remote_code
        return result


class StoreError(PolicyMeshError):
    """Node-side policy store failure."""

    def __init__(self, message: str, **kwargs):
        super().__init__(ErrorCode.STORAGE_ERROR, message, **kwargs)


class ConfigError(PolicyMeshError):
    """Invalid configuration."""

    def __init__(self, message: str, **kwargs):
        super().__init__(ErrorCode.INVALID_CONFIG, message, **kwargs)


__all__ = [
    'ErrorCode',
    'PolicyMeshError',
    'InvalidIdentifier',
    'ExpressionError',
    'ExprSyntaxError',
    'MalformedExpression',
    'EvaluationError',
    'NodeNotFound',
    'TransportError',
    'NodeUnreachable',
    'ProtocolError',
    'RemoteError',
    'StoreError',
    'ConfigError',
]
