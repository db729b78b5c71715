"""BaseAdapter — connection/provisioning lifecycle shared by every backend."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from ..exceptions import InvalidArgumentError, NotRegisteredError
from ..index_registry import IndexRegistry

if TYPE_CHECKING:
    from ..ports import CompiledQuery, FetchedRecord

logger = logging.getLogger("polystore.adapters.base")


def _retrieve_exception(task: asyncio.Future[None]) -> None:
    if not task.cancelled():
        task.exception()


class BaseAdapter(ABC):
    """
    Lifecycle plumbing for backend adapters.

    * One connection task per adapter. It is started at construction when an
      event loop is running, otherwise on first use; every operation awaits
      the same task.
    * One provisioning task per collection id. Concurrent
      ``ensure_collection`` calls await the same task, so the backend sees a
      single "create if missing" request.
    * Operations on a collection that was never ensured raise
      :class:`~polystore.exceptions.NotRegisteredError`.

    Subclasses implement the ``_connect`` / ``_create_collection`` /
    ``_build_index`` hooks and the record operations.
    """

    def __init__(self) -> None:
        self.indexes = IndexRegistry()
        self._connecting: asyncio.Future[None] | None = None
        self._collections: dict[str, asyncio.Future[None]] = {}
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            self._connecting = asyncio.ensure_future(self._connect())
            # Mark a failure as retrieved; ready() still re-raises it.
            self._connecting.add_done_callback(_retrieve_exception)

    # -- hooks ---------------------------------------------------------------

    @abstractmethod
    async def _connect(self) -> None:
        """Open the backend connection."""

    @abstractmethod
    async def _create_collection(self, collection_id: str) -> None:
        """Create the collection/table if missing; tolerate "already exists"."""

    @abstractmethod
    async def _build_index(
        self,
        collection_id: str,
        name: str,
        fields: tuple[str, ...],
        field_spec: Mapping[str, int],
    ) -> None:
        """Build a secondary index; tolerate "already exists"."""

    # -- lifecycle -----------------------------------------------------------

    async def ready(self) -> None:
        """Wait for the shared connection task."""
        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect())
        await self._connecting

    async def ensure_collection(self, collection_id: str) -> None:
        """Create ``collection_id`` if needed. Idempotent and concurrency-safe."""
        task = self._collections.get(collection_id)
        if task is None:
            task = asyncio.ensure_future(self._provision(collection_id))
            self._collections[collection_id] = task
        await task

    async def _provision(self, collection_id: str) -> None:
        try:
            await self.ready()
            await self._create_collection(collection_id)
        except BaseException:
            # Forget the failed attempt so a later call can provision again.
            self._collections.pop(collection_id, None)
            raise
        logger.debug("Collection %r ready", collection_id)

    async def _collection_ready(self, collection_id: str) -> None:
        task = self._collections.get(collection_id)
        if task is None:
            raise NotRegisteredError(collection_id)
        await task

    async def create_index(
        self, collection_id: str, name: str, field_spec: Mapping[str, int]
    ) -> str:
        """Build an index over ``field_spec`` keys and register it.

        Returns the canonical index name (sorted, ``+``-joined fields).
        """
        if not field_spec:
            raise InvalidArgumentError("create_index requires at least one field")
        await self._collection_ready(collection_id)
        fields = tuple(sorted(field_spec))
        await self._build_index(collection_id, name, fields, field_spec)
        canonical = self.indexes.register(collection_id, fields)
        logger.debug(
            "Index %r (%s) registered on %r", name, canonical, collection_id
        )
        return canonical

    # -- record operations ---------------------------------------------------

    @abstractmethod
    async def insert(self, collection_id: str, obj: Mapping[str, Any]) -> str: ...

    @abstractmethod
    async def find_by_id(
        self, collection_id: str, record_id: str
    ) -> FetchedRecord | None: ...

    @abstractmethod
    async def find(
        self, collection_id: str, query: CompiledQuery
    ) -> list[FetchedRecord]: ...

    @abstractmethod
    async def find_one(
        self, collection_id: str, query: CompiledQuery
    ) -> FetchedRecord | None: ...

    @abstractmethod
    async def count(self, collection_id: str, query: CompiledQuery) -> int: ...

    @abstractmethod
    async def sum(
        self, collection_id: str, query: CompiledQuery, field: str
    ) -> int | float: ...

    @abstractmethod
    async def remove_by_id(self, collection_id: str, record_id: str) -> None: ...

    @abstractmethod
    async def remove(self, collection_id: str, query: CompiledQuery) -> None: ...

    @abstractmethod
    async def replace_by_id(
        self, collection_id: str, record_id: str, obj: Mapping[str, Any]
    ) -> None: ...

    @abstractmethod
    async def update_by_id(
        self,
        collection_id: str,
        record_id: str,
        obj: Mapping[str, Any],
        updated_keys: Iterable[str],
    ) -> None: ...

    @abstractmethod
    async def raw_cursor(self, collection_id: str) -> Any: ...

    @abstractmethod
    async def raw_table(self, collection_id: str) -> Any: ...

    @abstractmethod
    async def raw_connection(self) -> Any: ...

    @abstractmethod
    async def close(self) -> None: ...


def split_updates(
    obj: Mapping[str, Any], updated_keys: Iterable[str]
) -> tuple[dict[str, Any], list[str]]:
    """Reduce dotted update keys to top-level ``(values_to_set, keys_to_drop)``.

    A changed top-level key still present in ``obj`` is rewritten whole; one
    that is gone from ``obj`` is dropped from the stored record.
    """
    top_level = sorted({key.split(".")[0] for key in updated_keys})
    to_set = {key: obj[key] for key in top_level if key in obj}
    to_drop = [key for key in top_level if key not in obj]
    return to_set, to_drop
