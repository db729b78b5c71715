"""Registry of secondary indexes known to exist, per collection."""

from __future__ import annotations

from collections.abc import Iterable

from .query.filters import index_name


class IndexRegistry:
    """Collection id -> {canonical index name -> indexed fields}.

    The canonical name is the sorted, ``+``-joined field set (see
    :func:`polystore.query.filters.index_name`), so a filter's key set can be
    looked up directly. Fields are stored in that same sorted order, which is
    the order index keys are built in. Entries are never removed.
    """

    def __init__(self) -> None:
        self._indexes: dict[str, dict[str, tuple[str, ...]]] = {}

    def register(self, collection_id: str, fields: Iterable[str]) -> str:
        ordered = tuple(sorted(fields))
        if not ordered:
            raise ValueError("An index needs at least one field")
        name = index_name(ordered)
        self._indexes.setdefault(collection_id, {})[name] = ordered
        return name

    def fields(self, collection_id: str, name: str) -> tuple[str, ...] | None:
        """Indexed fields for ``name``, or None when no such index is known."""
        return self._indexes.get(collection_id, {}).get(name)

    def has(self, collection_id: str, name: str) -> bool:
        return self.fields(collection_id, name) is not None

    def names(self, collection_id: str) -> frozenset[str]:
        return frozenset(self._indexes.get(collection_id, {}))
