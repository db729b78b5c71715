"""RethinkDB adapter exceptions."""

from __future__ import annotations

from ...exceptions import BackendUnavailableError, PersistenceError


class RethinkPersistenceError(PersistenceError):
    """Base for RethinkDB adapter errors."""


class RethinkConnectionError(RethinkPersistenceError, BackendUnavailableError):
    """Raised when connection to RethinkDB fails."""
