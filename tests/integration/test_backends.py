"""Behavioural suite run against both backends on real servers.

Each case seeds matching and non-matching records (every record carries
``val: 2``), then checks count/find/sum/find_one of the query before and
after the matching records exist.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from polystore.exceptions import NotRegisteredError
from polystore.model import Database, Model

pytestmark = pytest.mark.integration


class Plain(Model):
    pass


class Indexed(Model):
    pass


@dataclass
class Case:
    query: Callable[[type[Model]], Any]
    matching: list[dict[str, Any]]
    not_matching: list[dict[str, Any]] = field(default_factory=list)
    expected: list[dict[str, Any]] | None = None
    ordered: bool = False
    skip_sum: bool = False


CASES: dict[str, Case] = {
    "where": Case(
        lambda m: m.where({"a": {"b": 1}, "b": 2, "c": None}),
        [{"a": {"b": 1}, "b": 2}, {"a": {"a": 1, "b": 1}, "b": 2}],
        [
            {},
            {"a": {"b": 1}, "b": 2, "c": True},
            {"a": {"b": 1}, "b": 3},
            {"a": {"a": 1, "b": 1}, "b": 3},
            {"a": {"b": 1}},
            {"a": {"a": 1, "b": 1}},
        ],
    ),
    "where_scalar": Case(
        lambda m: m.where({"a": 1}),
        [{"a": 1, "b": 2}, {"a": 1}],
        [{}, {"a": 2, "b": 2}, {"a": 2}],
    ),
    "deep_where": Case(
        lambda m: m.where({"a": {"x": 1}}),
        [{"a": {"x": 1}}],
        [{}, {"a": {"x": 2}}],
    ),
    "elem_value": Case(
        lambda m: m.elem("a", 1),
        [{"a": [2, 1, 3]}, {"a": [3, 1, 2]}],
        [{}, {"a": [2, 3, 4]}, {"a": [4, 3, 2]}, {"a": [{"x": 1}]}],
        skip_sum=True,
    ),
    "elem_document": Case(
        lambda m: m.elem("a", {"x": 1}),
        [{"a": [{"x": 1}, {"x": 2}]}],
        [{}, {"a": [{"x": 2}]}],
        skip_sum=True,
    ),
    "lt": Case(
        lambda m: m.lt("a", 100),
        [{"a": 99}, {"a": -1}],
        [{}, {"a": 101}, {"a": 500}, {"a": {"x": 1}}],
    ),
    "gt": Case(
        lambda m: m.gt("a", 100),
        [{"a": 101}, {"a": 500}],
        [{}, {"a": 99}, {"a": -1}, {"a": [{"x": 1}]}, {"a": [2]}],
    ),
    "lte": Case(
        lambda m: m.lte("a", 100),
        [{"a": 100}, {"a": 99}, {"a": -1}],
        [{}, {"a": 101}, {"a": 500}, {"a": {"x": 1}}],
    ),
    "gte": Case(
        lambda m: m.gte("a", 100).where({"b": 10}),
        [{"a": 100, "b": 10}, {"a": 101, "b": 10}, {"a": 500, "b": 10}],
        [{}, {"b": 10}, {"a": 100, "b": 1}, {"a": 99}, {"a": -1}, {"a": [{"x": 100}]}],
    ),
    "ne": Case(
        lambda m: m.ne("a", "a").ne("a", "b").ne("c", True),
        [
            {},
            {"a": "c"},
            {"a": {"x": "a"}},
            {"a": {"x": "b"}},
            {"a": [{"x": "a"}]},
            {"a": [{"x": "b"}]},
        ],
        [{"a": "a"}, {"a": "b"}, {"a": "c", "c": True}],
    ),
    "nin": Case(
        lambda m: m.nin("a", ["a", "b"]),
        [{}, {"a": "c"}, {"a": {"x": "a"}}, {"a": [{"x": "b"}]}],
        [{"a": "a"}, {"a": "b"}],
    ),
    "in": Case(
        lambda m: m.in_("a", ["a", "b"]),
        [{"a": "a"}, {"a": "b"}, {"a": "a", "b": "a"}],
        [{}, {"a": "c"}],
    ),
    "deep_in": Case(
        lambda m: m.in_("a.a", ["a", "b"]),
        [{"a": {"a": "a"}}, {"a": {"a": "b"}}],
        [{}, {"a": {"a": "c"}}, {"a": {"b": "a"}}],
    ),
    "match": Case(
        lambda m: m.match("a", re.compile(r"^[Ww][aoe]+w( lad)?$")),
        [{"a": "wew lad"}, {"a": "Weeeeew"}, {"a": "waaaw lad"}],
        [{}, {"a": "wewee"}, {"a": "WEW LAD"}, {"a": "wAw"}],
    ),
    "or": Case(
        lambda m: m.or_({"a": 1, "b": 2}, {"a": 2, "b": 1}, {"c": "a"}, {"c": "b"}),
        [
            {"a": 1, "b": 2},
            {"a": 2, "b": 1},
            {"a": 1, "b": 1, "c": "a"},
            {"a": 1, "b": 1, "c": "b"},
        ],
        [
            {},
            {"c": "c"},
            {"a": 1},
            {"b": 1},
            {"a": 2},
            {"b": 2},
            {"a": 2, "b": 2},
            {"a": 1, "b": 1},
            {"a": {"a": 1}},
            {"a": [{"a": 1}]},
        ],
        skip_sum=True,
    ),
    "and": Case(
        lambda m: m.and_({"a": 1}, {"b": 2}),
        [{"a": 1, "b": 2}],
        [{}, {"a": 1, "b": 3}, {"a": 2, "b": 2}, {"a": {"x": 1}}, {"a": [{"x": 1}]}],
        skip_sum=True,
    ),
    "limit": Case(
        lambda m: m.limit(2),
        [{}, {}, {}, {}],
        expected=[{}, {}],
    ),
    "sort": Case(
        lambda m: m.sort("a"),
        [{"a": 2}, {"a": 4}, {"a": 1}, {"a": 5}, {"a": 3}],
        expected=[{"a": 5}, {"a": 4}, {"a": 3}, {"a": 2}, {"a": 1}],
        ordered=True,
    ),
    "sort_skip": Case(
        lambda m: m.sort("a").skip(1),
        [{"a": 2}, {"a": 4}, {"a": 1}, {"a": 5}, {"a": 3}],
        expected=[{"a": 4}, {"a": 3}, {"a": 2}, {"a": 1}],
        ordered=True,
    ),
    "sort_asc_skip": Case(
        lambda m: m.sort("a", "asc").skip(1),
        [{"a": 2}, {"a": 4}, {"a": 1}, {"a": 5}, {"a": 3}],
        expected=[{"a": 2}, {"a": 3}, {"a": 4}, {"a": 5}],
        ordered=True,
    ),
    "where_compound": Case(
        lambda m: m.where({"a": 1, "b": 2}),
        [{"a": 1, "b": 2}, {"a": 1, "b": 2, "c": 3}],
        [{}, {"a": 1}, {"b": 2}, {"a": 1, "b": 3}, {"a": 2, "b": 2}],
    ),
    "deep_match": Case(
        lambda m: m.where({"a": {"b": re.compile("^x")}}),
        [{"a": {"b": "xy"}}, {"a": {"b": "x", "c": 1}}],
        [{}, {"a": {"b": "yx"}}, {"a": {"c": "x"}}, {"a": {"b": 1}}],
    ),
    "where_array_field": Case(
        lambda m: m.where("tags", "x"),
        [{"tags": "x"}],
        [{}, {"tags": ["x"]}, {"tags": ["x", "y"]}, {"tags": "y"}],
    ),
    "ne_array_field": Case(
        lambda m: m.ne("tags", "x"),
        [{}, {"tags": "y"}, {"tags": ["x"]}, {"tags": ["x", "y"]}],
        [{"tags": "x"}],
    ),
    "in_array_field": Case(
        lambda m: m.in_("tags", ["x", "y"]),
        [{"tags": "x"}, {"tags": "y"}],
        [{}, {"tags": ["x"]}, {"tags": ["x", "y"]}, {"tags": "z"}],
    ),
    "gt_array_field": Case(
        lambda m: m.gt("n", 10),
        [{"n": 50}],
        [{}, {"n": 5}, {"n": [50]}, {"n": [5, 50]}],
    ),
    "sort_unset": Case(
        lambda m: m.sort("a"),
        [{"a": 2}, {}, {"a": 3}, {"a": 1}],
        expected=[{"a": 3}, {"a": 2}, {"a": 1}, {}],
        ordered=True,
    ),
    "sort_asc_unset": Case(
        lambda m: m.sort("a", "asc"),
        [{"a": 2}, {}, {"a": 3}, {"a": 1}],
        expected=[{}, {"a": 1}, {"a": 2}, {"a": 3}],
        ordered=True,
    ),
    "sort_then_sort": Case(
        lambda m: m.sort("a", "asc").sort("b", "asc"),
        [{"a": 1, "b": 2}, {"a": 2, "b": 1}, {"a": 0, "b": 2}],
        expected=[{"a": 2, "b": 1}, {"a": 0, "b": 2}, {"a": 1, "b": 2}],
        ordered=True,
    ),
    "limit_then_filter": Case(
        lambda m: m.sort("a", "asc").limit(2).in_("a", [2, 3]),
        [{"a": 3}, {"a": 1}, {"a": 2}],
        expected=[{"a": 2}],
        ordered=True,
    ),
    "limit_then_skip": Case(
        lambda m: m.sort("a", "asc").limit(3).skip(1),
        [{"a": 2}, {"a": 4}, {"a": 1}, {"a": 5}, {"a": 3}],
        expected=[{"a": 2}, {"a": 3}],
        ordered=True,
    ),
    "skip_then_limit": Case(
        lambda m: m.sort("a", "asc").skip(1).limit(2),
        [{"a": 2}, {"a": 4}, {"a": 1}, {"a": 5}, {"a": 3}],
        expected=[{"a": 2}, {"a": 3}],
        ordered=True,
    ),
}

INDEXED_CASES = [
    "where",
    "where_scalar",
    "where_compound",
    "sort",
    "sort_asc_skip",
    "sort_unset",
    "sort_asc_unset",
    "in",
    "deep_in",
]


def _canon(data: dict[str, Any]) -> str:
    return repr(sorted(data.items()))


async def _check(query_factory, model_cls, expected, *, ordered, skip_sum) -> None:
    expected = [{**e, "val": 2} for e in expected]

    assert await query_factory(model_cls).count() == len(expected)

    found = [m.get() for m in await query_factory(model_cls).find()]
    if ordered:
        assert found == expected
    else:
        assert sorted(map(_canon, found)) == sorted(map(_canon, expected))

    if not skip_sum:
        assert await query_factory(model_cls).sum("val") == 2 * len(expected)

    one = await query_factory(model_cls).find_one()
    if not expected:
        assert one is None
    elif ordered:
        assert one.get() == expected[0]
    else:
        assert one.get() in expected


async def _run_case(model_cls: type[Model], case: Case) -> None:
    await model_cls.remove_where({})
    await asyncio.gather(
        *(model_cls({**e, "val": 2}).save() for e in case.not_matching)
    )
    await _check(
        case.query, model_cls, [], ordered=case.ordered, skip_sum=case.skip_sum
    )
    await asyncio.gather(*(model_cls({**e, "val": 2}).save() for e in case.matching))
    await _check(
        case.query,
        model_cls,
        case.expected if case.expected is not None else case.matching,
        ordered=case.ordered,
        skip_sum=case.skip_sum,
    )


@pytest.fixture
async def db(real_adapter):
    database = Database(real_adapter)
    await database.register(Plain)
    await database.register(Indexed)
    await database.create_index(Indexed, "wow", {"a": -1, "b": -1})
    await database.create_index(Indexed, "wew", {"a.b": -1, "b": -1})
    await database.create_index(Indexed, "a", {"a": -1})
    yield database
    Plain._binding = None
    Indexed._binding = None


@pytest.mark.asyncio
@pytest.mark.parametrize("name", list(CASES))
async def test_query(db, name) -> None:
    await _run_case(Plain, CASES[name])


@pytest.mark.asyncio
@pytest.mark.parametrize("name", INDEXED_CASES)
async def test_query_on_indexed_collection(db, name) -> None:
    await _run_case(Indexed, CASES[name])


@pytest.mark.asyncio
async def test_model_storage(db) -> None:
    await Plain.remove_where({})
    assert await Plain.find_one() is None

    model = Plain({"a": 1})
    await model.save()
    other = await Plain.find_one()
    assert other.get("a") == 1

    model.set("b", 2)
    await model.save()
    await other.refresh()
    assert other.get() == {"a": 1, "b": 2}

    model.unset("b")
    await model.save()
    await other.refresh()
    assert other.get() == {"a": 1}

    model.set("a", 3)
    await model.replace()
    await other.refresh()
    assert other.get() == {"a": 3}


@pytest.mark.asyncio
async def test_identity_round_trip(db, real_adapter) -> None:
    record_id = await real_adapter.insert("plains", {"id": "mine", "x": 1})
    found = await real_adapter.find_by_id("plains", record_id)
    assert found.id == record_id
    assert found.object == {"id": "mine", "x": 1}
    assert await real_adapter.find_by_id("plains", "does-not-exist") is None


@pytest.mark.asyncio
async def test_sum_ignores_non_numeric(db) -> None:
    await Plain.remove_where({})
    for value in (1, 2.5, "x", None):
        await Plain({"n": value}).save()
    await Plain({}).save()
    assert await Plain.sum("n") == 3.5


@pytest.mark.asyncio
async def test_unregistered_collection(real_adapter) -> None:
    with pytest.raises(NotRegisteredError):
        await real_adapter.insert("never_ensured", {"a": 1})
