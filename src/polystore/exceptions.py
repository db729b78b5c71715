"""Exception hierarchy for polystore."""

from __future__ import annotations


class PolystoreError(Exception):
    """Root exception for the entire polystore toolkit."""


class InvalidArgumentError(PolystoreError, ValueError):
    """Raised when a builder or model call receives a malformed argument.

    Always raised synchronously, before any I/O is attempted.
    """


class NotRegisteredError(PolystoreError):
    """Raised when a collection or model class is used before it is bound."""

    def __init__(self, target: str) -> None:
        self.target = target
        super().__init__(f"{target!r} is not registered")


class NotFoundError(PolystoreError):
    """Raised when a record is required but does not exist."""

    def __init__(self, collection_id: str, record_id: object) -> None:
        self.collection_id = collection_id
        self.record_id = record_id
        super().__init__(f"{collection_id} with id={record_id!r} not found")


class InfrastructureError(PolystoreError):
    """Base class for all backend-related errors."""


class BackendUnavailableError(InfrastructureError):
    """Raised when the connection to a storage engine cannot be established."""


class PersistenceError(InfrastructureError):
    """Base class for errors raised while talking to a storage engine."""


class QueryCompilationError(PersistenceError):
    """Raised when a query operation cannot be compiled for a backend."""
