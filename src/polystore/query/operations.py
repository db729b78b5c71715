"""Query algebra — the closed set of operations a query is built from.

Every operation is a frozen dataclass; ``QueryOperation`` is their union.
Compilers dispatch with ``match`` and finish with ``assert_never`` so that a
new variant is a type error in every compiler until it is handled.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Equals:
    """``field == value``."""

    field: str
    value: Any


@dataclass(frozen=True)
class Filter:
    """Multi-field equality; ``criteria`` may be nested and hold regex leaves."""

    criteria: Mapping[str, Any]


@dataclass(frozen=True)
class ElementMatch:
    """Array ``field`` holds an element equal to (or matching) ``match``."""

    field: str
    match: Any


@dataclass(frozen=True)
class NotEquals:
    field: str
    value: Any


@dataclass(frozen=True)
class NotIn:
    field: str
    values: tuple[Any, ...]


@dataclass(frozen=True)
class In:
    field: str
    values: tuple[Any, ...]


@dataclass(frozen=True)
class Or:
    """Any of ``matches`` (each a filter mapping) holds."""

    matches: tuple[Mapping[str, Any], ...]


@dataclass(frozen=True)
class And:
    """All of ``matches`` (each a filter mapping) hold."""

    matches: tuple[Mapping[str, Any], ...]


@dataclass(frozen=True)
class GreaterThan:
    field: str
    value: Any


@dataclass(frozen=True)
class LessThan:
    field: str
    value: Any


@dataclass(frozen=True)
class GreaterOrEqual:
    field: str
    value: Any


@dataclass(frozen=True)
class LessOrEqual:
    field: str
    value: Any


@dataclass(frozen=True)
class Limit:
    count: int


@dataclass(frozen=True)
class Skip:
    count: int


@dataclass(frozen=True)
class Sort:
    field: str
    descending: bool = True


# Operations that narrow the record set without ordering or windowing it.
FilterOperation = Union[
    Equals,
    Filter,
    ElementMatch,
    NotEquals,
    NotIn,
    In,
    Or,
    And,
    GreaterThan,
    LessThan,
    GreaterOrEqual,
    LessOrEqual,
]

QueryOperation = Union[FilterOperation, Limit, Skip, Sort]

__all__ = [
    "And",
    "ElementMatch",
    "Equals",
    "Filter",
    "FilterOperation",
    "GreaterOrEqual",
    "GreaterThan",
    "In",
    "LessOrEqual",
    "LessThan",
    "Limit",
    "NotEquals",
    "NotIn",
    "Or",
    "QueryOperation",
    "Skip",
    "Sort",
]
