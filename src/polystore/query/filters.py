"""Pure helpers shared by the backend compilers.

None of these functions mutate their arguments; each returns new containers.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .operations import NotEquals, NotIn, QueryOperation

INDEX_NAME_SEPARATOR = "+"

# Python flag -> inline flag letter understood by both MongoDB and RE2.
_REGEX_FLAG_LETTERS: tuple[tuple[re.RegexFlag, str], ...] = (
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
)


def is_regex(value: Any) -> bool:
    """Return True for compiled regular expressions."""
    return isinstance(value, re.Pattern)


def regex_flags(pattern: re.Pattern[str]) -> str:
    """Return the inline flag letters of ``pattern`` (e.g. ``"im"``)."""
    return "".join(
        letter for flag, letter in _REGEX_FLAG_LETTERS if pattern.flags & flag
    )


def flatten_filter(criteria: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten a nested filter into ``{dotted.path: leaf}``.

    Non-empty mappings are descended into; lists, regexes, empty mappings and
    scalars are leaves.

    >>> flatten_filter({"a": {"b": 1}, "c": [1, 2]})
    {'a.b': 1, 'c': [1, 2]}
    """
    flat: dict[str, Any] = {}
    for key, value in criteria.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping) and value:
            flat.update(flatten_filter(value, path))
        else:
            flat[path] = value
    return flat


def split_regex_leaves(
    flat: Mapping[str, Any],
) -> tuple[dict[str, Any], dict[str, re.Pattern[str]]]:
    """Partition a flattened filter into ``(equality_leaves, regex_leaves)``."""
    plain: dict[str, Any] = {}
    patterns: dict[str, re.Pattern[str]] = {}
    for path in sorted(flat):
        value = flat[path]
        if is_regex(value):
            patterns[path] = value
        else:
            plain[path] = value
    return plain, patterns


def index_name(fields: Iterable[str]) -> str:
    """Canonical index name for a key-set: sorted field names joined by ``+``."""
    return INDEX_NAME_SEPARATOR.join(sorted(fields))


def fold_not_equals(operations: Sequence[QueryOperation]) -> list[QueryOperation]:
    """Merge runs of adjacent ``NotEquals`` on one field into a ``NotIn``.

    A run is broken by any other operation, including a ``NotEquals`` on a
    different field. A run of length one is kept as ``NotEquals``.
    """
    folded: list[QueryOperation] = []
    run: list[NotEquals] = []

    def flush() -> None:
        if len(run) == 1:
            folded.append(run[0])
        elif run:
            folded.append(NotIn(run[0].field, tuple(op.value for op in run)))
        run.clear()

    for op in operations:
        if isinstance(op, NotEquals):
            if run and run[0].field != op.field:
                flush()
            run.append(op)
            continue
        flush()
        folded.append(op)
    flush()
    return folded
