"""RethinkAdapter — IBackendAdapter over RethinkDB."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from rethinkdb.errors import ReqlOpFailedError

from ...config import RethinkConfig
from ...identity import extract_identity, swap_keys
from ..base import BaseAdapter, split_updates
from .compiler import RethinkQueryCompiler, index_key, numeric, resolve_path
from .connection import RethinkConnectionManager, r

if TYPE_CHECKING:
    from ...ports import CompiledQuery, FetchedRecord

logger = logging.getLogger("polystore.rethink.adapter")

# RethinkDB's primary key is ``id``; the record's own ``id`` field is kept
# under ``_id`` so the two never collide.
NATIVE_ID = "id"
LOGICAL_ID = "_id"


def _already_exists(error: ReqlOpFailedError) -> bool:
    return "already exists" in str(error)


class RethinkAdapter(BaseAdapter):
    """
    Reactive-table adapter.

    Usage::

        adapter = RethinkAdapter(RethinkConfig(host="db", db="app"))
        await adapter.ensure_collection("users")
        await adapter.create_index("users", "by_name", {"name": 1})
    """

    def __init__(
        self,
        config: RethinkConfig | None = None,
        *,
        connection: RethinkConnectionManager | None = None,
        **kwargs: Any,
    ) -> None:
        self._config = config or RethinkConfig(**kwargs)
        self._connection = connection or RethinkConnectionManager(
            self._config.host,
            self._config.port,
            db=self._config.db,
            user=self._config.user,
            password=self._config.password,
            timeout=self._config.timeout,
        )
        super().__init__()
        self._compiler = RethinkQueryCompiler(self.indexes)

    @property
    def connection(self) -> RethinkConnectionManager:
        return self._connection

    @property
    def _conn(self) -> Any:
        return self._connection.connection

    async def _table(self, collection_id: str) -> Any:
        await self._collection_ready(collection_id)
        return r.table(collection_id)

    async def _compiled(self, collection_id: str, query: CompiledQuery) -> Any:
        table = await self._table(collection_id)
        return self._compiler.compile(table, collection_id, query.operations)

    @staticmethod
    def _fetched(raw: Mapping[str, Any] | None) -> FetchedRecord | None:
        if raw is None:
            return None
        return extract_identity(swap_keys(NATIVE_ID, LOGICAL_ID, raw), LOGICAL_ID)

    # -- lifecycle hooks -----------------------------------------------------

    async def _connect(self) -> None:
        conn = await self._connection.connect()
        db = self._connection.db
        if await r.db_list().contains(db).run(conn):
            return
        try:
            await r.db_create(db).run(conn)
        except ReqlOpFailedError as e:
            if not _already_exists(e):
                raise

    async def _create_collection(self, collection_id: str) -> None:
        if not await r.table_list().contains(collection_id).run(self._conn):
            try:
                await r.table_create(collection_id).run(self._conn)
            except ReqlOpFailedError as e:
                if not _already_exists(e):
                    raise
                logger.debug("Table %r created concurrently", collection_id)
        await r.table(collection_id).wait().run(self._conn)

    async def _build_index(
        self,
        collection_id: str,
        name: str,
        fields: tuple[str, ...],
        field_spec: Mapping[str, int],
    ) -> None:
        rethink_name = "+".join(fields)
        if len(fields) == 1:
            key = lambda row: index_key(row, fields[0])  # noqa: E731
        else:
            key = lambda row: [resolve_path(row, f) for f in fields]  # noqa: E731
        table = r.table(collection_id)
        try:
            await table.index_create(rethink_name, key).run(self._conn)
        except ReqlOpFailedError as e:
            if not _already_exists(e):
                raise
            logger.debug(
                "Index %r (%s) already exists on %r", name, rethink_name, collection_id
            )
        await table.index_wait(rethink_name).run(self._conn)

    # -- record operations ---------------------------------------------------

    async def insert(self, collection_id: str, obj: Mapping[str, Any]) -> str:
        table = await self._table(collection_id)
        body = swap_keys(LOGICAL_ID, NATIVE_ID, obj)
        result = await table.insert(body).run(self._conn)
        generated = result.get("generated_keys")
        return str(generated[0] if generated else body[NATIVE_ID])

    async def find_by_id(
        self, collection_id: str, record_id: str
    ) -> FetchedRecord | None:
        table = await self._table(collection_id)
        return self._fetched(await table.get(record_id).run(self._conn))

    async def find(
        self, collection_id: str, query: CompiledQuery
    ) -> list[FetchedRecord]:
        cursor = await self._compiled(collection_id, query)
        docs = await cursor.coerce_to("array").run(self._conn)
        return [self._fetched(doc) for doc in docs]  # type: ignore[misc]

    async def find_one(
        self, collection_id: str, query: CompiledQuery
    ) -> FetchedRecord | None:
        cursor = await self._compiled(collection_id, query)
        docs = await cursor.limit(1).coerce_to("array").run(self._conn)
        return self._fetched(docs[0]) if docs else None

    async def count(self, collection_id: str, query: CompiledQuery) -> int:
        cursor = await self._compiled(collection_id, query)
        return int(await cursor.count().run(self._conn))

    async def sum(
        self, collection_id: str, query: CompiledQuery, field: str
    ) -> int | float:
        cursor = await self._compiled(collection_id, query)
        return await cursor.sum(
            lambda row: numeric(resolve_path(row, field))
        ).run(self._conn)

    async def remove_by_id(self, collection_id: str, record_id: str) -> None:
        table = await self._table(collection_id)
        await table.get(record_id).delete().run(self._conn)

    async def remove(self, collection_id: str, query: CompiledQuery) -> None:
        cursor = await self._compiled(collection_id, query)
        table = r.table(collection_id)
        # Index-sorted results are plain sequences, not selections.
        await cursor.for_each(
            lambda doc: table.get(doc[NATIVE_ID]).delete()
        ).run(self._conn)

    async def replace_by_id(
        self, collection_id: str, record_id: str, obj: Mapping[str, Any]
    ) -> None:
        table = await self._table(collection_id)
        body = swap_keys(LOGICAL_ID, NATIVE_ID, obj)
        body[NATIVE_ID] = record_id
        await table.get(record_id).replace(body).run(self._conn)

    async def update_by_id(
        self,
        collection_id: str,
        record_id: str,
        obj: Mapping[str, Any],
        updated_keys: Iterable[str],
    ) -> None:
        table = await self._table(collection_id)
        to_set, to_drop = split_updates(obj, updated_keys)
        stored = [
            key
            for key in swap_keys(LOGICAL_ID, NATIVE_ID, dict.fromkeys(to_drop))
            if key != NATIVE_ID
        ]
        if stored:
            await table.get(record_id).replace(
                lambda doc: doc.without(*stored)
            ).run(self._conn)
        if to_set:
            body = swap_keys(LOGICAL_ID, NATIVE_ID, to_set)
            body.pop(NATIVE_ID, None)
            if body:
                await table.get(record_id).update(body).run(self._conn)

    # -- raw access ----------------------------------------------------------

    async def raw_cursor(self, collection_id: str) -> Any:
        return await self._table(collection_id)

    async def raw_table(self, collection_id: str) -> Any:
        return await self._table(collection_id)

    async def raw_connection(self) -> Any:
        await self.ready()
        return self._conn

    async def close(self) -> None:
        await self._connection.close()
