"""
Package abac implements the attribute-based access-control policy model:
expressions, resource and action names, policies and policy paths.
"""

from .expr import (
    Op,
    Expr,
    Bool,
    Int,
    Str,
    Ident,
    Unary,
    Binary,
    parse,
    to_text,
    evaluate,
    is_satisfied
)

from .codec import (
    serialize,
    deserialize,
    expr_to_dict,
    expr_from_dict
)

from .types import (
    Resource,
    Action,
    Policy,
    PolicyPath,
    path_for,
    DEFAULT_ACTION
)

__all__ = [
    # Expressions
    'Op',
    'Expr',
    'Bool',
    'Int',
    'Str',
    'Ident',
    'Unary',
    'Binary',
    'parse',
    'to_text',
    'evaluate',
    'is_satisfied',

    # Wire codec
    'serialize',
    'deserialize',
    'expr_to_dict',
    'expr_from_dict',

    # Names and policies
    'Resource',
    'Action',
    'Policy',
    'PolicyPath',
    'path_for',
    'DEFAULT_ACTION'
]
