"""
Policy expression model.

An expression is a closed tree of literals, identifier references, the unary
``not`` and binary logical/comparison operators. The textual form is a small
s-expression language where every operator application is an explicit group::

    (and (= subject.role "admin") (not (< subject.age 18)))

``and``/``or`` accept two or more arguments and fold left-to-right, so
``(and a b c)`` is parsed as ``(and (and a b) c)``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Mapping, Optional, Union
import re

from ..errors import EvaluationError, ExprSyntaxError


# Groups deeper than this are rejected instead of exhausting the interpreter stack.
MAX_NESTING = 128

IDENT_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_.\-]*$')
INT_PATTERN = re.compile(r'^[+-]?[0-9]+$')

Value = Union[bool, int, str]


class Op(Enum):
    """Expression operators, valued by their textual symbol."""
    NOT = "not"
    AND = "and"
    OR = "or"
    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="


UNARY_OPS = frozenset({Op.NOT})
LOGICAL_OPS = frozenset({Op.AND, Op.OR})
COMPARISON_OPS = frozenset({Op.EQ, Op.NE, Op.LT, Op.LE, Op.GT, Op.GE})
BINARY_OPS = LOGICAL_OPS | COMPARISON_OPS

_OPS_BY_SYMBOL = {op.value: op for op in Op}
RESERVED_WORDS = frozenset({"true", "false"}) | frozenset(_OPS_BY_SYMBOL)


class Expr:
    """Base class of all expression nodes."""

    __slots__ = ()

    def __str__(self) -> str:
        return to_text(self)


@dataclass(frozen=True)
class Bool(Expr):
    value: bool

    def __post_init__(self):
        if type(self.value) is not bool:
            raise TypeError(f"Bool literal requires a bool, got {type(self.value).__name__}")


@dataclass(frozen=True)
class Int(Expr):
    value: int

    def __post_init__(self):
        if type(self.value) is not int:
            raise TypeError(f"Int literal requires an int, got {type(self.value).__name__}")


@dataclass(frozen=True)
class Str(Expr):
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str):
            raise TypeError(f"Str literal requires a str, got {type(self.value).__name__}")


@dataclass(frozen=True)
class Ident(Expr):
    """Reference to an attribute resolved at evaluation time."""
    name: str

    def __post_init__(self):
        if not isinstance(self.name, str) or not IDENT_PATTERN.match(self.name):
            raise ValueError(f"Invalid identifier: {self.name!r}")
        if self.name in RESERVED_WORDS:
            raise ValueError(f"Identifier is a reserved word: {self.name!r}")


@dataclass(frozen=True)
class Unary(Expr):
    op: Op
    operand: Expr

    def __post_init__(self):
        if self.op not in UNARY_OPS:
            raise ValueError(f"'{self.op.value}' is not a unary operator")
        if not isinstance(self.operand, Expr):
            raise TypeError("Unary operand must be an expression")


@dataclass(frozen=True)
class Binary(Expr):
    op: Op
    left: Expr
    right: Expr

    def __post_init__(self):
        if self.op not in BINARY_OPS:
            raise ValueError(f"'{self.op.value}' is not a binary operator")
        if not isinstance(self.left, Expr) or not isinstance(self.right, Expr):
            raise TypeError("Binary operands must be expressions")


def to_text(expr: Expr) -> str:
    """Render the canonical textual form of an expression."""
    if isinstance(expr, Bool):
        return "true" if expr.value else "false"
    if isinstance(expr, Int):
        return str(expr.value)
    if isinstance(expr, Str):
        escaped = expr.value.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(expr, Ident):
        return expr.name
    if isinstance(expr, Unary):
        return f"({expr.op.value} {to_text(expr.operand)})"
    if isinstance(expr, Binary):
        return f"({expr.op.value} {to_text(expr.left)} {to_text(expr.right)})"
    raise TypeError(f"Unknown expression node: {type(expr).__name__}")


# Parsing

@dataclass(frozen=True)
class _Token:
    kind: str  # "(", ")", "string" or "atom"
    text: str
    start: int
    end: int


def _tokenize(text: str) -> Iterator[_Token]:
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c.isspace():
            i += 1
        elif c in "()":
            yield _Token(c, c, i, i + 1)
            i += 1
        elif c == '"':
            start = i
            i += 1
            chars: List[str] = []
            while True:
                if i >= n:
                    raise ExprSyntaxError("unterminated string literal", text, start, n)
                c = text[i]
                if c == '"':
                    i += 1
                    break
                if c == '\\':
                    if i + 1 >= n:
                        raise ExprSyntaxError("unterminated string literal", text, start, n)
                    escaped = text[i + 1]
                    if escaped not in '"\\':
                        raise ExprSyntaxError(f"invalid escape '\\{escaped}'", text, i, i + 2)
                    chars.append(escaped)
                    i += 2
                else:
                    chars.append(c)
                    i += 1
            yield _Token("string", "".join(chars), start, i)
        else:
            start = i
            while i < n and not text[i].isspace() and text[i] not in '()"':
                i += 1
            yield _Token("atom", text[start:i], start, i)


class _Parser:

    def __init__(self, text: str):
        self.text = text
        self.tokens = list(_tokenize(text))
        self.pos = 0

    def _error(self, message: str, start: int, end: int) -> ExprSyntaxError:
        return ExprSyntaxError(message, self.text, start, end)

    def _peek(self) -> Optional[_Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def _next(self) -> Optional[_Token]:
        token = self._peek()
        if token is not None:
            self.pos += 1
        return token

    def parse(self) -> Expr:
        if not self.tokens:
            raise self._error("empty expression", 0, len(self.text))
        expr = self._expr(0)
        trailing = self._peek()
        if trailing is not None:
            raise self._error("unexpected trailing input", trailing.start, len(self.text))
        return expr

    def _expr(self, depth: int) -> Expr:
        token = self._next()
        if token is None:
            raise self._error("unexpected end of input", len(self.text), len(self.text))
        if token.kind == "(":
            return self._group(token, depth + 1)
        if token.kind == ")":
            raise self._error("unbalanced ')'", token.start, token.end)
        if token.kind == "string":
            return Str(token.text)
        return self._atom(token)

    def _atom(self, token: _Token) -> Expr:
        text = token.text
        if text in _OPS_BY_SYMBOL:
            raise self._error(
                f"operator '{text}' must be the first element of a group",
                token.start, token.end
            )
        if text == "true":
            return Bool(True)
        if text == "false":
            return Bool(False)
        if INT_PATTERN.match(text):
            try:
                return Int(int(text))
            except ValueError:
                raise self._error("integer literal too large", token.start, token.end)
        if IDENT_PATTERN.match(text):
            return Ident(text)
        raise self._error(f"invalid token '{text}'", token.start, token.end)

    def _group(self, opening: _Token, depth: int) -> Expr:
        if depth > MAX_NESTING:
            raise self._error("expression nested too deeply", opening.start, opening.end)

        head = self._next()
        if head is None:
            raise self._error("unbalanced '('", opening.start, len(self.text))
        if head.kind == ")":
            raise self._error("empty group", opening.start, head.end)
        if head.kind != "atom" or head.text not in _OPS_BY_SYMBOL:
            raise self._error("group must start with an operator", head.start, head.end)
        op = _OPS_BY_SYMBOL[head.text]

        args: List[Expr] = []
        while True:
            token = self._peek()
            if token is None:
                raise self._error("unbalanced '('", opening.start, len(self.text))
            if token.kind == ")":
                closing = self._next()
                break
            args.append(self._expr(depth))

        span = (opening.start, closing.end)
        if op in UNARY_OPS:
            if len(args) != 1:
                raise self._error(f"'{op.value}' takes exactly one argument", *span)
            return Unary(op, args[0])
        if op in COMPARISON_OPS:
            if len(args) != 2:
                raise self._error(f"'{op.value}' takes exactly two arguments", *span)
            return Binary(op, args[0], args[1])

        if len(args) < 2:
            raise self._error(f"'{op.value}' takes at least two arguments", *span)
        result = Binary(op, args[0], args[1])
        for arg in args[2:]:
            result = Binary(op, result, arg)
        return result


def parse(text: str) -> Expr:
    """
    Parse expression text.

    Args:
        text: Expression source

    Returns:
        Expr: The parsed expression tree

    Raises:
        ExprSyntaxError: If the text is not a valid expression
    """
    if not isinstance(text, str):
        raise TypeError("Expression text must be a string")
    return _Parser(text).parse()


# Evaluation

def evaluate(expr: Expr, attributes: Mapping[str, Value]) -> Value:
    """
    Evaluate an expression against request attributes.

    Logical operators short-circuit. Equality between values of different
    types is false; ordering is only defined between two ints or two strings.
    """
    if isinstance(expr, (Bool, Int, Str)):
        return expr.value
    if isinstance(expr, Ident):
        try:
            value = attributes[expr.name]
        except KeyError:
            raise EvaluationError(f"unbound identifier '{expr.name}'")
        if not isinstance(value, (bool, int, str)):
            raise EvaluationError(
                f"attribute '{expr.name}' has unsupported type {type(value).__name__}"
            )
        return value
    if isinstance(expr, Unary):
        return not _as_bool(expr.op, evaluate(expr.operand, attributes))
    if isinstance(expr, Binary):
        if expr.op in LOGICAL_OPS:
            left = _as_bool(expr.op, evaluate(expr.left, attributes))
            if expr.op is Op.AND and not left:
                return False
            if expr.op is Op.OR and left:
                return True
            return _as_bool(expr.op, evaluate(expr.right, attributes))
        return _compare(expr.op, evaluate(expr.left, attributes), evaluate(expr.right, attributes))
    raise TypeError(f"Unknown expression node: {type(expr).__name__}")


def is_satisfied(expr: Expr, attributes: Mapping[str, Value]) -> bool:
    """Evaluate a policy expression, requiring a boolean decision."""
    result = evaluate(expr, attributes)
    if type(result) is not bool:
        raise EvaluationError(f"policy evaluated to non-boolean value {result!r}")
    return result


def _as_bool(op: Op, value: Value) -> bool:
    if type(value) is not bool:
        raise EvaluationError(f"'{op.value}' requires boolean operands, got {value!r}")
    return value


def _compare(op: Op, left: Value, right: Value) -> bool:
    same_type = type(left) is type(right)
    if op is Op.EQ:
        return same_type and left == right
    if op is Op.NE:
        return not (same_type and left == right)

    if not same_type or type(left) is bool:
        raise EvaluationError(f"cannot order {left!r} and {right!r} with '{op.value}'")
    if op is Op.LT:
        return left < right
    if op is Op.LE:
        return left <= right
    if op is Op.GT:
        return left > right
    return left >= right
