"""MongoDB adapter exceptions."""

from __future__ import annotations

from ...exceptions import BackendUnavailableError, PersistenceError


class MongoPersistenceError(PersistenceError):
    """Base for MongoDB adapter errors."""


class MongoConnectionError(MongoPersistenceError, BackendUnavailableError):
    """Raised when connection to MongoDB fails."""
