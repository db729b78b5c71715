"""Record body <-> BSON document conversion (UUID, Decimal, ``_id``)."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any, cast
from uuid import UUID

from bson import Decimal128, ObjectId

from ...identity import extract_identity
from ...ports import FetchedRecord
from .exceptions import MongoPersistenceError

NATIVE_ID = "_id"


def _serialize_value(value: Any) -> Any:
    """Convert Python types to BSON-safe types."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, Mapping):
        return {k: _serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    return value


def _deserialize_value(value: Any) -> Any:
    """Convert BSON types back to Python types."""
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, dict):
        return {k: _deserialize_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_deserialize_value(v) for v in value]
    return value


def to_document(obj: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a record body to a BSON-ready document (a new dict)."""
    if not isinstance(obj, Mapping):
        raise MongoPersistenceError("Record body must be a mapping")
    return cast("dict[str, Any]", _serialize_value(obj))


def from_document(doc: Mapping[str, Any]) -> FetchedRecord:
    """Convert a stored document to ``FetchedRecord``; ``_id`` becomes ``id``."""
    if NATIVE_ID not in doc:
        raise MongoPersistenceError(f"Document has no {NATIVE_ID!r}: {doc!r}")
    return extract_identity(_deserialize_value(dict(doc)), NATIVE_ID)


def id_filter(record_id: Any) -> dict[str, Any]:
    """Filter selecting a document by logical id.

    Ids are handed out as strings; a string that is a valid ObjectId matches
    both its ObjectId and its plain string form.
    """
    if isinstance(record_id, str) and ObjectId.is_valid(record_id):
        return {NATIVE_ID: {"$in": [ObjectId(record_id), record_id]}}
    return {NATIVE_ID: record_id}
