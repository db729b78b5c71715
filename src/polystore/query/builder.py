"""
Fluent query builder.

Example::

    query = (
        QueryBuilder("users", adapter)
        .where({"address": {"city": "Athens"}})
        .gte("age", 18)
        .sort("age", "asc")
        .limit(10)
    )
    records = await query.find()
    total = await query.count()
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ..exceptions import InvalidArgumentError
from .operations import (
    And,
    ElementMatch,
    Equals,
    Filter,
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

if TYPE_CHECKING:
    from ..ports import FetchedRecord, IBackendAdapter

T = TypeVar("T")

_ASCENDING = frozenset({"1", "asc", "ascending"})
_DESCENDING = frozenset({"-1", "desc", "descending"})
_MISSING: Any = object()


def parse_sort_direction(direction: int | str) -> bool:
    """Return True for a descending direction; raise on anything unknown."""
    token = str(direction).strip().lower()
    if token in _ASCENDING:
        return False
    if token in _DESCENDING:
        return True
    raise InvalidArgumentError(f"Invalid sort direction: {direction!r}")


def _check_count(name: str, count: Any) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise InvalidArgumentError(f"{name} requires a non-negative int, got {count!r}")
    return count


class QueryBuilder(Generic[T]):
    """
    Accumulates query operations for one collection.

    Builder methods append an operation and return ``self``. Terminal methods
    (``find``, ``find_one``, ``count``, ``sum``, ``remove``) delegate to the
    bound adapter and may be awaited any number of times; once one has run the
    operation list is frozen.

    ``wrap`` converts each fetched record into the caller's type (a Model
    class uses it to return instances instead of raw records).
    """

    def __init__(
        self,
        collection_id: str,
        adapter: IBackendAdapter,
        *,
        wrap: Callable[[FetchedRecord], T] | None = None,
    ) -> None:
        self._collection_id = collection_id
        self._adapter = adapter
        self._wrap = wrap
        self._operations: list[QueryOperation] = []
        self._executed = False

    @property
    def collection_id(self) -> str:
        return self._collection_id

    @property
    def operations(self) -> tuple[QueryOperation, ...]:
        return tuple(self._operations)

    def _push(self, operation: QueryOperation) -> QueryBuilder[T]:
        if self._executed:
            raise InvalidArgumentError(
                "Query has already been executed; start a new query to extend it"
            )
        self._operations.append(operation)
        return self

    # -- filters -------------------------------------------------------------

    def where(
        self, key: str | Mapping[str, Any], value: Any = _MISSING
    ) -> QueryBuilder[T]:
        """``where(field, value)`` for equality, ``where({...})`` for a filter."""
        if isinstance(key, Mapping):
            if value is not _MISSING:
                raise InvalidArgumentError("where(mapping) takes no value argument")
            return self._push(Filter(dict(key)))
        if value is _MISSING:
            raise InvalidArgumentError(f"where({key!r}) requires a value")
        return self._push(Equals(key, value))

    def match(self, field: str, pattern: str | re.Pattern[str]) -> QueryBuilder[T]:
        """Regex match on a single (dotted) field."""
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        return self._push(Filter({field: compiled}))

    def elem(self, field: str, match: Any) -> QueryBuilder[T]:
        return self._push(ElementMatch(field, match))

    def ne(self, field: str, value: Any) -> QueryBuilder[T]:
        return self._push(NotEquals(field, value))

    def nin(self, field: str, values: list[Any] | tuple[Any, ...]) -> QueryBuilder[T]:
        return self._push(NotIn(field, tuple(values)))

    def in_(self, field: str, values: list[Any] | tuple[Any, ...]) -> QueryBuilder[T]:
        return self._push(In(field, tuple(values)))

    def or_(self, *matches: Mapping[str, Any]) -> QueryBuilder[T]:
        return self._push(Or(tuple(dict(m) for m in matches)))

    def and_(self, *matches: Mapping[str, Any]) -> QueryBuilder[T]:
        return self._push(And(tuple(dict(m) for m in matches)))

    def gt(self, field: str, value: Any) -> QueryBuilder[T]:
        return self._push(GreaterThan(field, value))

    def lt(self, field: str, value: Any) -> QueryBuilder[T]:
        return self._push(LessThan(field, value))

    def gte(self, field: str, value: Any) -> QueryBuilder[T]:
        return self._push(GreaterOrEqual(field, value))

    def lte(self, field: str, value: Any) -> QueryBuilder[T]:
        return self._push(LessOrEqual(field, value))

    # -- pagination / ordering ----------------------------------------------

    def limit(self, count: int) -> QueryBuilder[T]:
        return self._push(Limit(_check_count("limit", count)))

    def skip(self, count: int) -> QueryBuilder[T]:
        return self._push(Skip(_check_count("skip", count)))

    def sort(self, field: str, direction: int | str = "desc") -> QueryBuilder[T]:
        return self._push(Sort(field, parse_sort_direction(direction)))

    # -- terminal operations -------------------------------------------------

    def _result(self, record: FetchedRecord) -> Any:
        return self._wrap(record) if self._wrap is not None else record

    async def find(self) -> list[Any]:
        self._executed = True
        records = await self._adapter.find(self._collection_id, self)
        return [self._result(record) for record in records]

    async def find_one(self) -> Any | None:
        self._executed = True
        record = await self._adapter.find_one(self._collection_id, self)
        return None if record is None else self._result(record)

    async def count(self) -> int:
        self._executed = True
        return await self._adapter.count(self._collection_id, self)

    async def sum(self, field: str) -> int | float:
        self._executed = True
        return await self._adapter.sum(self._collection_id, self, field)

    async def remove(self) -> None:
        self._executed = True
        await self._adapter.remove(self._collection_id, self)

    def __repr__(self) -> str:
        return f"QueryBuilder({self._collection_id!r}, operations={self._operations!r})"
