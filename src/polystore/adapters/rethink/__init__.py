"""RethinkDB (reactive table) adapter."""

from __future__ import annotations

from .adapter import RethinkAdapter
from .compiler import RethinkQueryCompiler
from .connection import RethinkConnectionManager
from .exceptions import RethinkConnectionError, RethinkPersistenceError

__all__ = [
    "RethinkAdapter",
    "RethinkConnectionError",
    "RethinkConnectionManager",
    "RethinkPersistenceError",
    "RethinkQueryCompiler",
]
