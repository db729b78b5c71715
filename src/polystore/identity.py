"""Identity-field convention between records and storage engines."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .ports import FetchedRecord


def swap_keys(key_a: str, key_b: str, obj: Mapping[str, Any]) -> dict[str, Any]:
    """Return a shallow copy of ``obj`` with ``key_a`` and ``key_b`` swapped.

    Whichever of the two keys is present is renamed to the other; absent keys
    stay absent.

    >>> swap_keys("id", "_id", {"id": 1, "x": 2})
    {'x': 2, '_id': 1}
    """
    swapped = dict(obj)
    has_a, has_b = key_a in swapped, key_b in swapped
    value_a = swapped.pop(key_a, None)
    value_b = swapped.pop(key_b, None)
    if has_a:
        swapped[key_b] = value_a
    if has_b:
        swapped[key_a] = value_b
    return swapped


def extract_identity(raw: Mapping[str, Any], native_key: str) -> FetchedRecord:
    """Split a raw stored document into ``FetchedRecord(id, object)``.

    ``native_key`` is removed from the body and surfaced as the string id.
    """
    body = dict(raw)
    record_id = body.pop(native_key)
    return FetchedRecord(id=str(record_id), object=body)
