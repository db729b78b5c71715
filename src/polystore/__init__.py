"""
polystore — one query algebra, two storage engines.

Queries are built once with :class:`~polystore.query.QueryBuilder` (or the
:class:`~polystore.model.Model` query starters) and compiled per backend by
``polystore.adapters.mongo`` or ``polystore.adapters.rethink``.
"""

from __future__ import annotations

from .config import MongoConfig, RethinkConfig
from .exceptions import (
    BackendUnavailableError,
    InfrastructureError,
    InvalidArgumentError,
    NotFoundError,
    NotRegisteredError,
    PersistenceError,
    PolystoreError,
    QueryCompilationError,
)
from .index_registry import IndexRegistry
from .model import Database, Model, ModelBinding
from .ports import CompiledQuery, FetchedRecord, IBackendAdapter
from .query import QueryBuilder

__version__ = "0.1.0"

__all__ = [
    # Model layer
    "Database",
    "Model",
    "ModelBinding",
    # Query
    "QueryBuilder",
    # Ports
    "CompiledQuery",
    "FetchedRecord",
    "IBackendAdapter",
    "IndexRegistry",
    # Config
    "MongoConfig",
    "RethinkConfig",
    # Exceptions
    "BackendUnavailableError",
    "InfrastructureError",
    "InvalidArgumentError",
    "NotFoundError",
    "NotRegisteredError",
    "PersistenceError",
    "PolystoreError",
    "QueryCompilationError",
]
