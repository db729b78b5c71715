"""Document-store compiler: query algebra -> MongoDB cursor/pipeline plan."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from typing_extensions import assert_never

from ...query.filters import (
    flatten_filter,
    fold_not_equals,
    regex_flags,
    split_regex_leaves,
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


def match_nothing() -> dict[str, Any]:
    # _id always exists, so this never holds.
    return {"_id": {"$exists": False}}


@dataclass
class CursorStage:
    """
    Filters and sorts up to and including one skip/limit window.

    Filters commute with sorts, so a stage always runs as
    ``find(filter).sort(sort).skip(skip).limit(limit)``. ``sort`` lists the
    primary key first.
    """

    clauses: list[dict[str, Any]] = field(default_factory=list)
    sort: list[tuple[str, int]] = field(default_factory=list)
    skip: int | None = None
    limit: int | None = None

    @property
    def filter(self) -> dict[str, Any]:
        if not self.clauses:
            return {}
        if len(self.clauses) == 1:
            return self.clauses[0]
        return {"$and": list(self.clauses)}

    @property
    def is_paginated(self) -> bool:
        return bool(self.skip) or self.limit is not None

    @property
    def is_closed(self) -> bool:
        return self.skip is not None or self.limit is not None

    def pipeline(self) -> list[dict[str, Any]]:
        stages: list[dict[str, Any]] = []
        if self.clauses:
            stages.append({"$match": self.filter})
        if self.sort:
            stages.append({"$sort": dict(self.sort)})
        if self.skip:
            stages.append({"$skip": self.skip})
        if self.limit is not None:
            stages.append({"$limit": self.limit})
        return stages


@dataclass
class MongoCursorPlan:
    """
    Compiled form of a query: stages applied one after another.

    A plan with one stage runs as a plain cursor; longer plans (a filter or
    sort after a skip/limit, or a limit before a skip) run as an aggregation
    pipeline so every operation keeps its place in the call order.
    """

    stages: list[CursorStage] = field(default_factory=lambda: [CursorStage()])

    @property
    def is_single_cursor(self) -> bool:
        return len(self.stages) == 1

    @property
    def head(self) -> CursorStage:
        return self.stages[0]

    @property
    def filter(self) -> dict[str, Any]:
        """Filter of the first stage (the whole query for a single cursor)."""
        return self.head.filter

    @property
    def is_empty(self) -> bool:
        """True when the plan can match nothing (a ``limit(0)`` anywhere).

        MongoDB treats a zero limit as "no limit", so callers short-circuit.
        """
        return any(stage.limit == 0 for stage in self.stages)

    def pipeline(self) -> list[dict[str, Any]]:
        """Aggregation stages equivalent to running the stages in order."""
        return [step for stage in self.stages for step in stage.pipeline()]


_ARRAY = {"$type": "array"}


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def scalar_condition(path: str, condition: dict[str, Any]) -> dict[str, Any]:
    """``condition`` on ``path``, held only when the stored value is no array.

    Without the guard MongoDB also tests each element of an array field,
    which would make ``where("tags", "x")`` match ``{"tags": ["x"]}``.
    """
    return {path: {**condition, "$not": dict(_ARRAY)}}


def negated_condition(path: str, condition: dict[str, Any]) -> dict[str, Any]:
    """``condition`` on ``path``, or any array value (the ``$ne``/``$nin`` dual)."""
    return {"$or": [{path: condition}, {path: dict(_ARRAY)}]}


def regex_clause(pattern: re.Pattern[str]) -> dict[str, Any]:
    return {"$regex": pattern.pattern, "$options": regex_flags(pattern)}


def equality_leaf(path: str, value: Any) -> dict[str, Any]:
    """Whole-value equality; list values compare as exact arrays."""
    if _is_list(value):
        return {path: value}
    return scalar_condition(path, {"$eq": value})


def compile_filter(criteria: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Compile a (nested) filter into one equality clause plus one per regex.

    >>> compile_filter({"a": {"b": 1}, "c": re.compile("^x")})[0]
    {'a.b': {'$eq': 1, '$not': {'$type': 'array'}}}
    """
    plain, patterns = split_regex_leaves(flatten_filter(criteria))
    clauses: list[dict[str, Any]] = []
    if plain:
        merged: dict[str, Any] = {}
        for path, value in plain.items():
            merged.update(equality_leaf(path, value))
        clauses.append(merged)
    clauses.extend(
        scalar_condition(path, regex_clause(p)) for path, p in patterns.items()
    )
    return clauses


def match_document(criteria: Mapping[str, Any]) -> dict[str, Any]:
    """Compile a filter into a single query document.

    Flattened paths are unique, so the clauses merge without collisions.
    """
    merged: dict[str, Any] = {}
    for clause in compile_filter(criteria):
        merged.update(clause)
    return merged


def _combine(
    operator: str, matches: Iterable[Mapping[str, Any]]
) -> dict[str, Any] | None:
    documents = [match_document(m) for m in matches]
    if not documents:
        return None
    if len(documents) == 1:
        return documents[0]
    return {operator: documents}


def _comparison(path: str, operator: str, value: Any) -> dict[str, Any]:
    if _is_list(value):
        return {path: {operator: value}}
    return scalar_condition(path, {operator: value})


class MongoQueryCompiler:
    """Folds query operations, in order, into a :class:`MongoCursorPlan`."""

    def compile(self, operations: Iterable[QueryOperation]) -> MongoCursorPlan:
        plan = MongoCursorPlan()
        for op in fold_not_equals(list(operations)):
            self._apply(plan, op)
        return plan

    def _apply(self, plan: MongoCursorPlan, op: QueryOperation) -> None:
        stage = plan.stages[-1]
        match op:
            case Limit(count=count):
                if stage.limit is not None:
                    stage = self._open(plan)
                stage.limit = count
            case Skip(count=count):
                if stage.is_closed:
                    stage = self._open(plan)
                stage.skip = count
            case Sort(field=path, descending=descending):
                if stage.is_closed:
                    stage = self._open(plan)
                # The latest sort is the primary key; earlier ones break ties.
                stage.sort = [(path, -1 if descending else 1)] + [
                    (k, d) for k, d in stage.sort if k != path
                ]
            case _:
                if stage.is_closed:
                    stage = self._open(plan)
                stage.clauses.extend(self._clauses(op))

    @staticmethod
    def _open(plan: MongoCursorPlan) -> CursorStage:
        stage = CursorStage()
        plan.stages.append(stage)
        return stage

    def _clauses(self, op: FilterOperation) -> list[dict[str, Any]]:
        match op:
            case Equals(field=path, value=value):
                return compile_filter({path: value})
            case Filter(criteria=criteria):
                return compile_filter(criteria)
            case ElementMatch(field=path, match=value):
                if isinstance(value, Mapping):
                    return [{path: {"$elemMatch": match_document(value)}}]
                return [{path: {"$elemMatch": {"$eq": value}}}]
            case NotEquals(field=path, value=value):
                if _is_list(value):
                    return [{path: {"$ne": value}}]
                return [negated_condition(path, {"$ne": value})]
            case NotIn(field=path, values=values):
                if any(_is_list(v) for v in values):
                    return [{path: {"$nin": list(values)}}]
                return [negated_condition(path, {"$nin": list(values)})]
            case In(field=path, values=values):
                if not values:
                    return [match_nothing()]
                if any(_is_list(v) for v in values):
                    return [{path: {"$in": list(values)}}]
                return [scalar_condition(path, {"$in": list(values)})]
            case Or(matches=matches):
                combined = _combine("$or", matches)
                return [] if combined is None else [combined]
            case And(matches=matches):
                combined = _combine("$and", matches)
                return [] if combined is None else [combined]
            case GreaterThan(field=path, value=value):
                return [_comparison(path, "$gt", value)]
            case LessThan(field=path, value=value):
                return [_comparison(path, "$lt", value)]
            case GreaterOrEqual(field=path, value=value):
                return [_comparison(path, "$gte", value)]
            case LessOrEqual(field=path, value=value):
                return [_comparison(path, "$lte", value)]
            case _:
                assert_never(op)
