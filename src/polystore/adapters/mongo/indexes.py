"""Index helpers — compound indexes tolerant of concurrent creation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pymongo.errors import OperationFailure

if TYPE_CHECKING:
    from .connection import MongoConnectionManager

logger = logging.getLogger("polystore.mongo.indexes")

# IndexAlreadyExists, IndexOptionsConflict, IndexKeySpecsConflict
_ALREADY_EXISTS_CODES = frozenset({68, 85, 86})


async def create_compound_index(
    connection: MongoConnectionManager,
    database: str,
    collection: str,
    keys: list[tuple[str, int]],
    *,
    name: str | None = None,
) -> str | None:
    """Create a compound index. keys: [(field, 1|(-1)), ...].

    Returns the index name, or None when an equivalent index already exists.
    """
    coll = connection.client.get_database(database).get_collection(collection)
    try:
        return await coll.create_index(keys, name=name)
    except OperationFailure as e:
        if e.code not in _ALREADY_EXISTS_CODES:
            raise
        logger.debug("Index %r on %s.%s already exists", name, database, collection)
        return None
