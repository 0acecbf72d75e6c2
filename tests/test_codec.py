"""
Tests for the expression and policy wire codec.
"""

import json
import sys

import pytest

from policymesh.abac.codec import deserialize, expr_from_dict, expr_to_dict, serialize
from policymesh.abac.expr import MAX_NESTING, parse
from policymesh.abac.types import Policy
from policymesh.errors import MalformedExpression


class TestSerialization:
    """Test encoding and decoding of expression trees"""

    @pytest.mark.parametrize("text", [
        "false",
        '(= subject.role "ad\\"min")',
        "(or (not (< subject.age -18)) (and a b c))",
    ])
    def test_round_trip(self, text):
        expr = parse(text)
        assert deserialize(serialize(expr)) == expr

    def test_tagged_layout(self):
        assert expr_to_dict(parse("(not (= a 1))")) == {
            't': 'unary',
            'op': 'not',
            'arg': {
                't': 'binary',
                'op': '=',
                'lhs': {'t': 'ident', 'v': 'a'},
                'rhs': {'t': 'int', 'v': 1}
            }
        }

    def test_policy_body(self):
        policy = Policy(parse("true"))
        assert json.loads(policy.to_json()) == {'expression': {'t': 'bool', 'v': True}}
        assert Policy.from_json(policy.to_json()) == policy


class TestMalformedPayloads:
    """Test strict rejection of malformed wire data"""

    def test_truncated(self):
        payload = serialize(parse("(and a b)"))
        with pytest.raises(MalformedExpression):
            deserialize(payload[:-3])

    def test_not_utf8(self):
        with pytest.raises(MalformedExpression):
            deserialize(b"\xff\xfe")

    @pytest.mark.skipif(not hasattr(sys, "set_int_max_str_digits"), reason="no integer digit limit")
    def test_oversized_integer(self):
        payload = b'{"t":"int","v":' + b"1" * 5000 + b"}"
        with pytest.raises(MalformedExpression):
            deserialize(payload)

    @pytest.mark.parametrize("node", [
        {'t': 'int', 'v': True},
        {'t': 'bool', 'v': 1},
        {'t': 'int', 'v': 1.5},
        {'t': 'str', 'v': None},
        {'t': 'ident', 'v': 'not valid'},
        {'t': 'ident', 'v': 'true'},
        {'t': 'float', 'v': 1.0},
        {'t': ['bool'], 'v': True},
        {'v': True},
        {'t': 'bool', 'v': True, 'extra': 1},
        {'t': 'unary', 'op': 'and', 'arg': {'t': 'bool', 'v': True}},
        {'t': 'binary', 'op': 'not', 'lhs': {'t': 'bool', 'v': True}, 'rhs': {'t': 'bool', 'v': True}},
        {'t': 'binary', 'op': '~', 'lhs': {'t': 'bool', 'v': True}, 'rhs': {'t': 'bool', 'v': True}},
        {'t': 'binary', 'op': 'and', 'lhs': {'t': 'bool', 'v': True}},
        ['t', 'bool'],
    ])
    def test_inconsistent_nodes(self, node):
        with pytest.raises(MalformedExpression):
            expr_from_dict(node)

    def test_nesting_limit(self):
        node = {'t': 'bool', 'v': True}
        for _ in range(MAX_NESTING + 2):
            node = {'t': 'unary', 'op': 'not', 'arg': node}
        with pytest.raises(MalformedExpression):
            expr_from_dict(node)

    def test_policy_body_requires_expression_only(self):
        with pytest.raises(MalformedExpression):
            Policy.from_json(b'{}')
        with pytest.raises(MalformedExpression):
            Policy.from_json(b'{"expression": {"t": "bool", "v": true}, "resource": "x"}')
        with pytest.raises(MalformedExpression):
            Policy.from_json(b'[]')
