"""Unit tests for QueryBuilder."""

from __future__ import annotations

import re
from unittest.mock import AsyncMock

import pytest

from polystore.exceptions import InvalidArgumentError
from polystore.ports import FetchedRecord
from polystore.query import (
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
    QueryBuilder,
    Skip,
    Sort,
    parse_sort_direction,
)


@pytest.fixture
def adapter():
    mock = AsyncMock()
    mock.find.return_value = [FetchedRecord("1", {"a": 1})]
    mock.find_one.return_value = None
    mock.count.return_value = 3
    mock.sum.return_value = 6
    return mock


def test_operations_are_recorded_in_call_order(adapter) -> None:
    query = (
        QueryBuilder("docs", adapter)
        .where("a", 1)
        .where({"b": {"c": 2}})
        .elem("arr", {"x": 1})
        .ne("a", 2)
        .nin("a", ["x", "y"])
        .in_("a", ("p",))
        .or_({"a": 1}, {"b": 2})
        .and_({"a": 1})
        .gt("n", 1)
        .lt("n", 9)
        .gte("n", 2)
        .lte("n", 8)
        .limit(5)
        .skip(1)
        .sort("n", "asc")
    )
    assert query.operations == (
        Equals("a", 1),
        Filter({"b": {"c": 2}}),
        ElementMatch("arr", {"x": 1}),
        NotEquals("a", 2),
        NotIn("a", ("x", "y")),
        In("a", ("p",)),
        Or(({"a": 1}, {"b": 2})),
        And(({"a": 1},)),
        GreaterThan("n", 1),
        LessThan("n", 9),
        GreaterOrEqual("n", 2),
        LessOrEqual("n", 8),
        Limit(5),
        Skip(1),
        Sort("n", descending=False),
    )


def test_match_compiles_string_patterns(adapter) -> None:
    query = QueryBuilder("docs", adapter).match("a.b", "^w")
    (op,) = query.operations
    assert isinstance(op, Filter)
    assert op.criteria["a.b"].pattern == "^w"


def test_match_keeps_compiled_patterns(adapter) -> None:
    pattern = re.compile("^w", re.I)
    query = QueryBuilder("docs", adapter).match("a", pattern)
    assert query.operations == (Filter({"a": pattern}),)


def test_where_requires_a_value_for_a_key(adapter) -> None:
    with pytest.raises(InvalidArgumentError):
        QueryBuilder("docs", adapter).where("a")


def test_where_mapping_rejects_value(adapter) -> None:
    with pytest.raises(InvalidArgumentError):
        QueryBuilder("docs", adapter).where({"a": 1}, 2)


def test_where_accepts_explicit_none(adapter) -> None:
    query = QueryBuilder("docs", adapter).where("c", None)
    assert query.operations == (Equals("c", None),)


@pytest.mark.parametrize("count", [-1, 1.5, "2", True])
def test_limit_and_skip_reject_bad_counts(adapter, count) -> None:
    with pytest.raises(InvalidArgumentError):
        QueryBuilder("docs", adapter).limit(count)
    with pytest.raises(InvalidArgumentError):
        QueryBuilder("docs", adapter).skip(count)


def test_sort_defaults_to_descending(adapter) -> None:
    query = QueryBuilder("docs", adapter).sort("a")
    assert query.operations == (Sort("a", descending=True),)


@pytest.mark.parametrize(
    ("direction", "descending"),
    [
        (1, False),
        ("1", False),
        ("asc", False),
        ("Ascending", False),
        (-1, True),
        ("-1", True),
        ("desc", True),
        ("DESCENDING", True),
    ],
)
def test_parse_sort_direction(direction, descending) -> None:
    assert parse_sort_direction(direction) is descending


@pytest.mark.parametrize("direction", ["up", 0, 2, ""])
def test_invalid_sort_direction_raises(direction) -> None:
    with pytest.raises(InvalidArgumentError):
        parse_sort_direction(direction)


def test_invalid_sort_direction_is_not_recorded(adapter) -> None:
    query = QueryBuilder("docs", adapter)
    with pytest.raises(InvalidArgumentError):
        query.sort("a", "sideways")
    assert query.operations == ()


@pytest.mark.asyncio
async def test_terminals_delegate_to_adapter(adapter) -> None:
    query = QueryBuilder("docs", adapter).where("a", 1)

    assert await query.find() == [FetchedRecord("1", {"a": 1})]
    assert await query.find_one() is None
    assert await query.count() == 3
    assert await query.sum("val") == 6
    await query.remove()

    adapter.find.assert_awaited_once_with("docs", query)
    adapter.find_one.assert_awaited_once_with("docs", query)
    adapter.count.assert_awaited_once_with("docs", query)
    adapter.sum.assert_awaited_once_with("docs", query, "val")
    adapter.remove.assert_awaited_once_with("docs", query)


@pytest.mark.asyncio
async def test_terminals_can_run_repeatedly(adapter) -> None:
    query = QueryBuilder("docs", adapter).limit(1)
    assert await query.count() == 3
    assert await query.count() == 3
    assert adapter.count.await_count == 2


@pytest.mark.asyncio
async def test_query_is_frozen_after_execution(adapter) -> None:
    query = QueryBuilder("docs", adapter).where("a", 1)
    await query.count()
    with pytest.raises(InvalidArgumentError):
        query.limit(1)
    assert query.operations == (Equals("a", 1),)


@pytest.mark.asyncio
async def test_wrap_converts_results(adapter) -> None:
    adapter.find_one.return_value = FetchedRecord("7", {"a": 2})
    query = QueryBuilder("docs", adapter, wrap=lambda rec: (rec.id, rec.object))

    assert await query.find() == [("1", {"a": 1})]
    assert await query.find_one() == ("7", {"a": 2})
