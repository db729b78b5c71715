"""MongoAdapter — IBackendAdapter over MongoDB (Motor)."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from pymongo.errors import CollectionInvalid

from ...config import MongoConfig
from ..base import BaseAdapter, split_updates
from .compiler import CursorStage, MongoCursorPlan, MongoQueryCompiler
from .connection import MongoConnectionManager
from .indexes import create_compound_index
from .serialization import NATIVE_ID, from_document, id_filter, to_document

if TYPE_CHECKING:
    from ...ports import CompiledQuery, FetchedRecord

logger = logging.getLogger("polystore.mongo.adapter")


class MongoAdapter(BaseAdapter):
    """
    Document-store adapter.

    Usage::

        adapter = MongoAdapter(MongoConfig(url="mongodb://db:27017", database="app"))
        await adapter.ensure_collection("users")
        user_id = await adapter.insert("users", {"name": "Ann"})

    A pre-built :class:`MongoConnectionManager` can be passed as
    ``connection`` (tests hand in one wrapping ``mongomock-motor``).
    """

    def __init__(
        self,
        config: MongoConfig | None = None,
        *,
        connection: MongoConnectionManager | None = None,
        compiler: MongoQueryCompiler | None = None,
        **kwargs: Any,
    ) -> None:
        self._config = config or MongoConfig(**kwargs)
        self._connection = connection or MongoConnectionManager(
            self._config.url,
            server_selection_timeout_ms=self._config.server_selection_timeout_ms,
            connect_timeout_ms=self._config.connect_timeout_ms,
        )
        self._compiler = compiler or MongoQueryCompiler()
        super().__init__()

    @property
    def connection(self) -> MongoConnectionManager:
        return self._connection

    def _db(self) -> Any:
        return self._connection.client.get_database(self._config.database)

    async def _collection(self, collection_id: str) -> Any:
        await self._collection_ready(collection_id)
        return self._db().get_collection(collection_id)

    def _plan(self, query: CompiledQuery) -> MongoCursorPlan:
        return self._compiler.compile(query.operations)

    @staticmethod
    def _cursor(coll: Any, stage: CursorStage, **find_kwargs: Any) -> Any:
        cursor = coll.find(stage.filter, **find_kwargs)
        if stage.sort:
            cursor = cursor.sort(stage.sort)
        if stage.skip:
            cursor = cursor.skip(stage.skip)
        if stage.limit is not None:
            cursor = cursor.limit(stage.limit)
        return cursor

    @staticmethod
    async def _aggregate(
        coll: Any, plan: MongoCursorPlan, *tail: dict[str, Any]
    ) -> list[dict[str, Any]]:
        pipeline = [*plan.pipeline(), *tail]
        logger.debug("Running pipeline on %r: %r", coll.name, pipeline)
        docs: list[dict[str, Any]] = await coll.aggregate(pipeline).to_list(
            length=None
        )
        return docs

    # -- lifecycle hooks -----------------------------------------------------

    async def _connect(self) -> None:
        await self._connection.connect()

    async def _create_collection(self, collection_id: str) -> None:
        db = self._db()
        if collection_id in await db.list_collection_names():
            return
        try:
            await db.create_collection(collection_id)
        except CollectionInvalid:
            logger.debug("Collection %r created concurrently", collection_id)

    async def _build_index(
        self,
        collection_id: str,
        name: str,
        fields: tuple[str, ...],
        field_spec: Mapping[str, int],
    ) -> None:
        keys = [(f, -1 if field_spec[f] < 0 else 1) for f in fields]
        await create_compound_index(
            self._connection, self._config.database, collection_id, keys, name=name
        )

    # -- record operations ---------------------------------------------------

    async def insert(self, collection_id: str, obj: Mapping[str, Any]) -> str:
        coll = await self._collection(collection_id)
        result = await coll.insert_one(to_document(obj))
        return str(result.inserted_id)

    async def find_by_id(
        self, collection_id: str, record_id: str
    ) -> FetchedRecord | None:
        coll = await self._collection(collection_id)
        doc = await coll.find_one(id_filter(record_id))
        return None if doc is None else from_document(doc)

    async def find(
        self, collection_id: str, query: CompiledQuery
    ) -> list[FetchedRecord]:
        coll = await self._collection(collection_id)
        plan = self._plan(query)
        if plan.is_empty:
            return []
        if plan.is_single_cursor:
            docs = await self._cursor(coll, plan.head).to_list(length=None)
        else:
            docs = await self._aggregate(coll, plan)
        return [from_document(doc) for doc in docs]

    async def find_one(
        self, collection_id: str, query: CompiledQuery
    ) -> FetchedRecord | None:
        coll = await self._collection(collection_id)
        plan = self._plan(query)
        if plan.is_empty:
            return None
        if plan.is_single_cursor:
            docs = await self._cursor(coll, replace(plan.head, limit=1)).to_list(
                length=1
            )
        else:
            docs = await self._aggregate(coll, plan, {"$limit": 1})
        return from_document(docs[0]) if docs else None

    async def count(self, collection_id: str, query: CompiledQuery) -> int:
        coll = await self._collection(collection_id)
        plan = self._plan(query)
        if plan.is_empty:
            return 0
        if not plan.is_single_cursor:
            docs = await self._aggregate(coll, plan, {"$count": "total"})
            return int(docs[0]["total"]) if docs else 0
        stage = plan.head
        kwargs: dict[str, int] = {}
        if stage.skip:
            kwargs["skip"] = stage.skip
        if stage.limit is not None:
            kwargs["limit"] = stage.limit
        return int(await coll.count_documents(stage.filter, **kwargs))

    async def sum(
        self, collection_id: str, query: CompiledQuery, field: str
    ) -> int | float:
        coll = await self._collection(collection_id)
        plan = self._plan(query)
        if plan.is_empty:
            return 0
        docs = await self._aggregate(
            coll, plan, {"$group": {"_id": None, "total": {"$sum": f"${field}"}}}
        )
        return docs[0]["total"] if docs else 0

    async def remove_by_id(self, collection_id: str, record_id: str) -> None:
        coll = await self._collection(collection_id)
        await coll.delete_one(id_filter(record_id))

    async def remove(self, collection_id: str, query: CompiledQuery) -> None:
        coll = await self._collection(collection_id)
        plan = self._plan(query)
        if plan.is_empty:
            return
        if plan.is_single_cursor and not plan.head.is_paginated:
            await coll.delete_many(plan.head.filter)
            return
        # delete_many ignores skip/limit and stage order; resolve ids first.
        if plan.is_single_cursor:
            docs = await self._cursor(
                coll, plan.head, projection={NATIVE_ID: 1}
            ).to_list(length=None)
        else:
            docs = await self._aggregate(coll, plan, {"$project": {NATIVE_ID: 1}})
        if docs:
            await coll.delete_many({NATIVE_ID: {"$in": [d[NATIVE_ID] for d in docs]}})

    async def replace_by_id(
        self, collection_id: str, record_id: str, obj: Mapping[str, Any]
    ) -> None:
        coll = await self._collection(collection_id)
        doc = to_document(obj)
        doc.pop(NATIVE_ID, None)
        await coll.replace_one(id_filter(record_id), doc)

    async def update_by_id(
        self,
        collection_id: str,
        record_id: str,
        obj: Mapping[str, Any],
        updated_keys: Iterable[str],
    ) -> None:
        coll = await self._collection(collection_id)
        to_set, to_drop = split_updates(obj, updated_keys)
        update: dict[str, Any] = {}
        if to_set:
            update["$set"] = to_document(to_set)
        if to_drop:
            update["$unset"] = dict.fromkeys(to_drop, "")
        if update:
            await coll.update_one(id_filter(record_id), update)

    # -- raw access ----------------------------------------------------------

    async def raw_cursor(self, collection_id: str) -> Any:
        coll = await self._collection(collection_id)
        return coll.find({})

    async def raw_table(self, collection_id: str) -> Any:
        return await self._collection(collection_id)

    async def raw_connection(self) -> Any:
        await self.ready()
        return self._connection.client

    async def close(self) -> None:
        self._connection.close()
