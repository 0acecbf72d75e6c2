"""
Wire codec for expressions.

Expressions are encoded as nested tagged JSON objects::

    {"t": "binary", "op": "=", "lhs": {"t": "ident", "v": "subject.role"},
     "rhs": {"t": "str", "v": "admin"}}

Decoding is strict: unknown tags, extra or missing keys, wrongly typed values
and operators used with the wrong arity all raise MalformedExpression.
"""

import json
from typing import Any, Dict

from ..errors import MalformedExpression
from .expr import (
    MAX_NESTING, UNARY_OPS, BINARY_OPS,
    Expr, Bool, Int, Str, Ident, Unary, Binary, Op
)


_LITERAL_TAGS = {
    'bool': (Bool, bool),
    'int': (Int, int),
    'str': (Str, str),
    'ident': (Ident, str),
}


def expr_to_dict(expr: Expr) -> Dict[str, Any]:
    """Convert an expression tree to its tagged dictionary form."""
    if isinstance(expr, Bool):
        return {'t': 'bool', 'v': expr.value}
    if isinstance(expr, Int):
        return {'t': 'int', 'v': expr.value}
    if isinstance(expr, Str):
        return {'t': 'str', 'v': expr.value}
    if isinstance(expr, Ident):
        return {'t': 'ident', 'v': expr.name}
    if isinstance(expr, Unary):
        return {'t': 'unary', 'op': expr.op.value, 'arg': expr_to_dict(expr.operand)}
    if isinstance(expr, Binary):
        return {
            't': 'binary',
            'op': expr.op.value,
            'lhs': expr_to_dict(expr.left),
            'rhs': expr_to_dict(expr.right)
        }
    raise TypeError(f"Unknown expression node: {type(expr).__name__}")


def expr_from_dict(data: Any) -> Expr:
    """Rebuild an expression tree from its tagged dictionary form."""
    return _decode(data, 0)


def _decode(data: Any, depth: int) -> Expr:
    if depth > MAX_NESTING:
        raise MalformedExpression("expression nested too deeply")
    if not isinstance(data, dict):
        raise MalformedExpression(f"expression node must be an object, got {type(data).__name__}")

    tag = data.get('t')
    if not isinstance(tag, str):
        raise MalformedExpression(f"expression node has no valid tag: {tag!r}")
    if tag in _LITERAL_TAGS:
        _expect_keys(data, {'t', 'v'})
        node_type, value_type = _LITERAL_TAGS[tag]
        value = data['v']
        if type(value) is not value_type:
            raise MalformedExpression(f"'{tag}' node carries a {type(value).__name__} value")
        try:
            return node_type(value)
        except (TypeError, ValueError) as e:
            raise MalformedExpression(f"invalid '{tag}' node: {e}", cause=e)

    if tag == 'unary':
        _expect_keys(data, {'t', 'op', 'arg'})
        op = _decode_op(data['op'])
        if op not in UNARY_OPS:
            raise MalformedExpression(f"'{op.value}' is not a unary operator")
        return Unary(op, _decode(data['arg'], depth + 1))

    if tag == 'binary':
        _expect_keys(data, {'t', 'op', 'lhs', 'rhs'})
        op = _decode_op(data['op'])
        if op not in BINARY_OPS:
            raise MalformedExpression(f"'{op.value}' is not a binary operator")
        return Binary(op, _decode(data['lhs'], depth + 1), _decode(data['rhs'], depth + 1))

    raise MalformedExpression(f"unknown expression tag: {tag!r}")


def _expect_keys(data: Dict[str, Any], keys: set) -> None:
    if set(data) != keys:
        raise MalformedExpression(
            f"'{data['t']}' node must have keys {sorted(keys)}, got {sorted(data)}"
        )


def _decode_op(symbol: Any) -> Op:
    try:
        return Op(symbol)
    except ValueError as e:
        raise MalformedExpression(f"unknown operator: {symbol!r}", cause=e)


def encode_json(data: Any) -> bytes:
    """Encode a wire document to compact UTF-8 JSON."""
    return json.dumps(data, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def decode_json(payload: bytes) -> Any:
    """Decode a UTF-8 JSON wire document."""
    try:
        if isinstance(payload, (bytes, bytearray)):
            payload = payload.decode('utf-8')
        return json.loads(payload)
    except (ValueError, TypeError, RecursionError) as e:
        raise MalformedExpression(f"undecodable payload: {e}", cause=e)


def serialize(expr: Expr) -> bytes:
    """Serialize an expression to its wire form."""
    return encode_json(expr_to_dict(expr))


def deserialize(payload: bytes) -> Expr:
    """Deserialize an expression from its wire form."""
    return expr_from_dict(decode_json(payload))
