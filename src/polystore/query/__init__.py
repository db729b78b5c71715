"""Query algebra, its builder, and the pure passes the compilers share."""

from __future__ import annotations

from .builder import QueryBuilder, parse_sort_direction
from .filters import (
    flatten_filter,
    fold_not_equals,
    index_name,
    is_regex,
    regex_flags,
    split_regex_leaves,
)
from .operations import (
    And,
    ElementMatch,
    Equals,
    Filter,
    FilterOperation,
    GreaterOrEqual,
    GreaterThan,
    In,
    LessOrEqual,
    LessThan,
    Limit,
    NotEquals,
    NotIn,
    Or,
    QueryOperation,
    Skip,
    Sort,
)

__all__ = [
    "QueryBuilder",
    "parse_sort_direction",
    # Operations
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
    # Helpers
    "flatten_filter",
    "fold_not_equals",
    "index_name",
    "is_regex",
    "regex_flags",
    "split_regex_leaves",
]
