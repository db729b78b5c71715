"""MongoDB (document store) adapter."""

from __future__ import annotations

from .adapter import MongoAdapter
from .compiler import MongoCursorPlan, MongoQueryCompiler
from .connection import MongoConnectionManager
from .exceptions import MongoConnectionError, MongoPersistenceError

__all__ = [
    "MongoAdapter",
    "MongoConnectionError",
    "MongoConnectionManager",
    "MongoCursorPlan",
    "MongoPersistenceError",
    "MongoQueryCompiler",
]
