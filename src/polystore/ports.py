"""IBackendAdapter — the contract every storage adapter implements."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .query.operations import QueryOperation


@dataclass(frozen=True)
class FetchedRecord:
    """Canonical read result: string id plus the body without native id key."""

    id: str
    object: dict[str, Any] = field(default_factory=dict)


class CompiledQuery(Protocol):
    """Anything exposing an ordered operation list (e.g. ``QueryBuilder``)."""

    @property
    def operations(self) -> Iterable[QueryOperation]: ...


@runtime_checkable
class IBackendAdapter(Protocol):
    """
    Backend-agnostic persistence contract.

    ``find``/``find_one``/``count``/``sum``/``remove`` apply every operation of
    the query in order. ``find_by_id``/``find_one`` return ``None`` on a miss;
    ``remove_by_id`` of a missing id is a no-op.
    """

    async def ensure_collection(self, collection_id: str) -> None: ...

    async def create_index(
        self, collection_id: str, name: str, field_spec: Mapping[str, int]
    ) -> str: ...

    async def insert(self, collection_id: str, obj: Mapping[str, Any]) -> str: ...

    async def find_by_id(
        self, collection_id: str, record_id: str
    ) -> FetchedRecord | None: ...

    async def find(
        self, collection_id: str, query: CompiledQuery
    ) -> list[FetchedRecord]: ...

    async def find_one(
        self, collection_id: str, query: CompiledQuery
    ) -> FetchedRecord | None: ...

    async def count(self, collection_id: str, query: CompiledQuery) -> int: ...

    async def sum(
        self, collection_id: str, query: CompiledQuery, field: str
    ) -> int | float: ...

    async def remove_by_id(self, collection_id: str, record_id: str) -> None: ...

    async def remove(self, collection_id: str, query: CompiledQuery) -> None: ...

    async def replace_by_id(
        self, collection_id: str, record_id: str, obj: Mapping[str, Any]
    ) -> None: ...

    async def update_by_id(
        self,
        collection_id: str,
        record_id: str,
        obj: Mapping[str, Any],
        updated_keys: Iterable[str],
    ) -> None: ...

    async def raw_cursor(self, collection_id: str) -> Any: ...

    async def raw_table(self, collection_id: str) -> Any: ...

    async def raw_connection(self) -> Any: ...

    async def close(self) -> None: ...
