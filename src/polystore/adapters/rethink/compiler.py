"""
Reactive-table compiler: query algebra -> ReQL.

ReQL has no dotted-path literal, so every path is resolved into chained
bracket lookups on a row expression. Predicates read missing fields through
``.default(None)`` so that absent fields compare as non-matching instead of
raising. ``Filter`` and ``Sort`` may be rewritten into index scans when the
collection's :class:`~polystore.index_registry.IndexRegistry` holds a
matching index and the cursor is still the bare table.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from typing_extensions import assert_never

from ...exceptions import QueryCompilationError
from ...index_registry import IndexRegistry
from ...query.filters import (
    flatten_filter,
    fold_not_equals,
    index_name,
    is_regex,
    regex_flags,
)
from ...query.operations import (
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
from .connection import r

logger = logging.getLogger("polystore.rethink.compiler")

# Logical and native identity names are stored swapped.
_IDENTITY_SWAP = {"id": "_id", "_id": "id"}


def resolve_path(base: Any, path: str) -> Any:
    """Resolve ``"a.b.c"`` into ``base["a"]["b"]["c"]``.

    A leading ``id`` / ``_id`` segment is swapped with the other.
    """
    first, *rest = path.split(".")
    expr = base[_IDENTITY_SWAP.get(first, first)]
    for segment in rest:
        expr = expr[segment]
    return expr


def to_reql_regex(pattern: re.Pattern[str]) -> str:
    """Render a Python pattern as an RE2 string with an inline flag prefix."""
    flags = regex_flags(pattern)
    if "x" in flags:
        raise QueryCompilationError("RethinkDB regexes do not support re.VERBOSE")
    return f"(?{flags}){pattern.pattern}" if flags else pattern.pattern


def leaf_predicate(target: Any, value: Any) -> Any:
    """Equality (or regex match) of one resolved path against a leaf value."""
    current = target.default(None)
    if is_regex(value):
        return current.type_of().eq("STRING").and_(
            current.match(to_reql_regex(value)).ne(None)
        )
    return current.eq(value)


def conjunction(predicates: Sequence[Any]) -> Any:
    if not predicates:
        return r.expr(True)
    if len(predicates) == 1:
        return predicates[0]
    return r.and_(*predicates)


def disjunction(predicates: Sequence[Any]) -> Any:
    if not predicates:
        return r.expr(False)
    if len(predicates) == 1:
        return predicates[0]
    return r.or_(*predicates)


def deep_match(base: Any, criteria: Mapping[str, Any]) -> Any:
    """Conjunction of per-path predicates for a (nested) filter."""
    flat = flatten_filter(criteria)
    return conjunction(
        [leaf_predicate(resolve_path(base, path), flat[path]) for path in sorted(flat)]
    )


def element_match(array: Any, match: Any) -> Any:
    """Array contains an element equal to ``match`` (or matching it, for a mapping)."""
    if isinstance(match, Mapping):
        return array.contains(
            lambda elem: elem.type_of().eq("OBJECT").and_(deep_match(elem, match))
        )
    return array.contains(lambda elem: elem.eq(match))


def membership(target: Any, values: Iterable[Any]) -> Any:
    return disjunction([leaf_predicate(target, value) for value in values])


def typed_comparison(target: Any, method: str, value: Any) -> Any:
    """Compare only against values of the bound's own ReQL type."""
    current = target.default(None)
    return current.type_of().eq(r.expr(value).type_of()).and_(
        getattr(current, method)(value)
    )


def numeric(target: Any) -> Any:
    """The value at ``target`` when it is a number, else 0."""
    current = target.default(0)
    return r.branch(current.type_of().eq("NUMBER"), current, 0)


def index_key(row: Any, path: str) -> Any:
    """Index function body for one path; null and missing values stay unindexed."""
    value = resolve_path(row, path).default(None)
    return r.branch(value.eq(None), r.error(f"{path} is unset"), value)


@dataclass
class _Window:
    """Filters and sorts between two skip/limit operations (sort: primary first)."""

    filters: list[FilterOperation] = field(default_factory=list)
    sort: list[tuple[str, bool]] = field(default_factory=list)


class RethinkQueryCompiler:
    """
    Folds query operations, in order, into a ReQL sequence.

    Filters commute with sorts, so the operations between two skip/limit
    operations are applied as their filters followed by one ``order_by`` whose
    primary key is the latest sort.

    Index usage, only while nothing has been applied to the table yet:

    * a leading ``Filter`` whose flattened key set names a registered index
      becomes ``get_all`` on that index, provided all its leaves are plain
      non-null values;
    * otherwise a lone sort key naming a registered single-field index becomes
      an index-ordered scan, joined with the rows the index leaves out.

    Everything else is a row-wise ``filter`` / path-resolved ``order_by``.
    """

    def __init__(self, registry: IndexRegistry) -> None:
        self._registry = registry

    def compile(
        self, table: Any, collection_id: str, operations: Iterable[QueryOperation]
    ) -> Any:
        cursor = table
        bare = True
        window = _Window()
        for op in fold_not_equals(list(operations)):
            match op:
                case Limit(count=count):
                    cursor = self._close(cursor, collection_id, window, bare)
                    cursor = cursor.limit(count)
                case Skip(count=count):
                    cursor = self._close(cursor, collection_id, window, bare)
                    cursor = cursor.skip(count)
                case Sort(field=path, descending=descending):
                    window.sort = [(path, descending)] + [
                        key for key in window.sort if key[0] != path
                    ]
                    continue
                case _:
                    window.filters.append(op)
                    continue
            bare = False
            window = _Window()
        return self._close(cursor, collection_id, window, bare)

    def _close(
        self, cursor: Any, collection_id: str, window: _Window, bare: bool
    ) -> Any:
        filters = window.filters
        sort = window.sort
        if bare and filters and isinstance(filters[0], Filter):
            lookup = self._equality_index(collection_id, filters[0].criteria)
            if lookup is not None:
                name, key = lookup
                logger.debug("Using index %r on %r", name, collection_id)
                cursor = cursor.get_all(key, index=name)
                filters = filters[1:]
                bare = False
        if bare and len(sort) == 1 and self._registry.has(collection_id, sort[0][0]):
            path, descending = sort[0]
            logger.debug("Sorting %r by index %r", collection_id, path)
            cursor = self._index_sorted(cursor, path, descending)
            sort = []
        for op in filters:
            cursor = self._filter(cursor, op)
        if sort:
            cursor = cursor.order_by(
                *[self._order_key(path, descending) for path, descending in sort]
            )
        return cursor

    def _filter(self, cursor: Any, op: FilterOperation) -> Any:
        match op:
            case Filter(criteria=criteria):
                return cursor.filter(lambda row: deep_match(row, criteria))
            case Equals(field=path, value=value):
                return cursor.filter(lambda row: deep_match(row, {path: value}))
            case ElementMatch(field=path, match=value):
                return cursor.filter(
                    lambda row: self._array_predicate(row, path, value)
                )
            case NotEquals(field=path, value=value):
                return cursor.filter(
                    lambda row: resolve_path(row, path).default(None).ne(value)
                )
            case NotIn(field=path, values=values):
                return cursor.filter(
                    lambda row: membership(resolve_path(row, path), values).not_()
                )
            case In(field=path, values=values):
                return cursor.filter(
                    lambda row: membership(resolve_path(row, path), values)
                )
            case Or(matches=matches):
                if not matches:
                    return cursor
                return cursor.filter(
                    lambda row: disjunction([deep_match(row, m) for m in matches])
                )
            case And(matches=matches):
                if not matches:
                    return cursor
                return cursor.filter(
                    lambda row: conjunction([deep_match(row, m) for m in matches])
                )
            case GreaterThan(field=path, value=value):
                return self._compare(cursor, path, "gt", value)
            case LessThan(field=path, value=value):
                return self._compare(cursor, path, "lt", value)
            case GreaterOrEqual(field=path, value=value):
                return self._compare(cursor, path, "ge", value)
            case LessOrEqual(field=path, value=value):
                return self._compare(cursor, path, "le", value)
            case _:
                assert_never(op)

    def _equality_index(
        self, collection_id: str, criteria: Mapping[str, Any]
    ) -> tuple[str, Any] | None:
        """Return ``(index_name, key)`` when ``criteria`` can use an index."""
        flat = flatten_filter(criteria)
        if not flat or any(v is None or is_regex(v) for v in flat.values()):
            return None
        name = index_name(flat)
        fields = self._registry.fields(collection_id, name)
        if fields is None:
            return None
        values = [flat[f] for f in fields]
        return name, values if len(values) > 1 else values[0]

    @staticmethod
    def _array_predicate(row: Any, path: str, match: Any) -> Any:
        array = resolve_path(row, path).default(None)
        return array.type_of().eq("ARRAY").and_(element_match(array, match))

    @staticmethod
    def _compare(cursor: Any, path: str, method: str, value: Any) -> Any:
        return cursor.filter(
            lambda row: typed_comparison(resolve_path(row, path), method, value)
        )

    @staticmethod
    def _order_key(path: str, descending: bool) -> Any:
        order = r.desc if descending else r.asc
        return order(lambda row: resolve_path(row, path).default(None))

    @staticmethod
    def _index_sorted(table: Any, path: str, descending: bool) -> Any:
        """Index-ordered scan plus the unindexed rows, placed where nulls sort."""
        order = r.desc if descending else r.asc
        indexed = table.order_by(index=order(path))
        unset = table.filter(lambda row: resolve_path(row, path).default(None).eq(None))
        if descending:
            return indexed.union(unset, interleave=False)
        return unset.union(indexed, interleave=False)
