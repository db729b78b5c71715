"""
Active-record layer over an :class:`~polystore.ports.IBackendAdapter`.

Example::

    class User(Model):
        pass

    db = Database(MongoAdapter(MongoConfig(url="mongodb://db:27017")))
    await db.register(User)

    user = User({"name": "Ann"})
    user.set("address.city", "Athens")
    await user.save()

    adults = await User.gte("age", 18).sort("age", "asc").find()
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, TypeVar

from .exceptions import InvalidArgumentError, NotFoundError, NotRegisteredError
from .ports import FetchedRecord, IBackendAdapter
from .query.builder import QueryBuilder

logger = logging.getLogger("polystore.model")

M = TypeVar("M", bound="Model")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def collection_id_for(model_cls: type[Model]) -> str:
    """``__collection__`` if declared, else the pluralised snake-case name."""
    declared = model_cls.__dict__.get("__collection__")
    if declared:
        return str(declared)
    return _CAMEL_BOUNDARY.sub("_", model_cls.__name__).lower() + "s"


# -- dotted-path helpers -----------------------------------------------------


def _get_path(data: Mapping[str, Any], key: str) -> Any:
    current: Any = data
    for segment in key.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return None
        current = current[segment]
    return current


def _set_path(data: dict[str, Any], key: str, value: Any) -> None:
    *parents, leaf = key.split(".")
    current = data
    for segment in parents:
        child = current.get(segment)
        if not isinstance(child, dict):
            child = current[segment] = {}
        current = child
    current[leaf] = value


def _delete_path(data: dict[str, Any], key: str) -> None:
    *parents, leaf = key.split(".")
    current: Any = data
    for segment in parents:
        current = current.get(segment) if isinstance(current, dict) else None
    if isinstance(current, dict):
        current.pop(leaf, None)


@dataclass(frozen=True)
class ModelBinding:
    """Adapter and collection a registered Model class persists through."""

    adapter: IBackendAdapter
    collection_id: str


class Database:
    """Binds Model classes to an adapter and provisions their collections."""

    def __init__(self, adapter: IBackendAdapter) -> None:
        self.adapter = adapter

    async def register(self, model_cls: type[Model]) -> ModelBinding:
        binding = ModelBinding(self.adapter, collection_id_for(model_cls))
        await self.adapter.ensure_collection(binding.collection_id)
        model_cls._binding = binding
        logger.debug(
            "Registered %s on collection %r", model_cls.__name__, binding.collection_id
        )
        return binding

    async def create_index(
        self, model_cls: type[Model], name: str, field_spec: Mapping[str, int]
    ) -> str:
        binding = model_cls.binding()
        return await binding.adapter.create_index(
            binding.collection_id, name, field_spec
        )


class Model:
    """
    A record with dotted-path accessors and change tracking.

    ``save()`` inserts a new record, or writes only the keys touched since the
    last save/refresh. Class methods query the bound collection and return
    instances of the class.
    """

    _binding: ClassVar[ModelBinding | None] = None

    def __init__(
        self, data: Mapping[str, Any] | None = None, id: str | None = None
    ) -> None:
        self._data: dict[str, Any] = dict(data or {})
        self._id = id
        self._updates: set[str] = set()

    @property
    def id(self) -> str | None:
        return self._id

    @property
    def updates(self) -> frozenset[str]:
        """Keys changed since the last save or refresh."""
        return frozenset(self._updates)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id!r}, data={self._data!r})"

    # -- binding -------------------------------------------------------------

    @classmethod
    def binding(cls) -> ModelBinding:
        binding = cls.__dict__.get("_binding")
        if binding is None:
            raise NotRegisteredError(cls.__name__)
        return binding

    @classmethod
    def _from_record(cls: type[M], record: FetchedRecord) -> M:
        return cls(record.object, record.id)

    @classmethod
    def query(cls: type[M]) -> QueryBuilder[M]:
        binding = cls.binding()
        return QueryBuilder(
            binding.collection_id, binding.adapter, wrap=cls._from_record
        )

    # -- data access ---------------------------------------------------------

    def get(self, key: str = "") -> Any:
        """Whole data copy for ``""``, the id for ``"_id"``, else a dotted lookup."""
        if not key:
            return dict(self._data)
        if key == "_id":
            return self._id
        return _get_path(self._data, key)

    def set(self, key: str | Mapping[str, Any], value: Any = None) -> None:
        if isinstance(key, Mapping):
            for k, v in key.items():
                self.set(k, v)
            return
        _set_path(self._data, key, value)
        self._updates.add(key)

    def unset(self, key: str | Iterable[str] | None = None) -> None:
        """Remove one key, several keys, or (with no argument) everything."""
        if key is None:
            self._updates.update(self._data)
            self._data = {}
            return
        keys = [key] if isinstance(key, str) else list(key)
        for k in keys:
            _delete_path(self._data, k)
            self._updates.add(k)

    def increment(self, key: str, amount: int | float = 1) -> None:
        self.set(key, (self.get(key) or 0) + amount)

    def decrement(self, key: str, amount: int | float = 1) -> None:
        self.set(key, (self.get(key) or 0) - amount)

    def push(self, key: str, value: Any) -> None:
        current = self.get(key)
        if current is None:
            current = []
        if not isinstance(current, list):
            raise InvalidArgumentError(f"Can't push to non-list field {key!r}")
        current.append(value)
        self.set(key, current)

    # -- persistence ---------------------------------------------------------

    async def save(self) -> None:
        binding = self.binding()
        if self._id is None:
            self._id = await binding.adapter.insert(binding.collection_id, self._data)
        elif self._updates:
            await binding.adapter.update_by_id(
                binding.collection_id, self._id, self._data, self._updates
            )
        self._updates = set()

    async def replace(self) -> None:
        """Overwrite the stored record with the full current data."""
        binding = self.binding()
        if self._id is None:
            self._id = await binding.adapter.insert(binding.collection_id, self._data)
        else:
            await binding.adapter.replace_by_id(
                binding.collection_id, self._id, self._data
            )
        self._updates = set()

    async def remove(self) -> None:
        binding = self.binding()
        if self._id is None:
            raise NotFoundError(binding.collection_id, None)
        await binding.adapter.remove_by_id(binding.collection_id, self._id)
        self._id = None

    async def refresh(self) -> None:
        binding = self.binding()
        if self._id is None:
            raise NotFoundError(binding.collection_id, None)
        record = await binding.adapter.find_by_id(binding.collection_id, self._id)
        if record is None:
            raise NotFoundError(binding.collection_id, self._id)
        self._data = dict(record.object)
        self._updates = set()

    # -- class-level reads ---------------------------------------------------

    @classmethod
    async def find_by_id(cls: type[M], record_id: str) -> M | None:
        binding = cls.binding()
        record = await binding.adapter.find_by_id(binding.collection_id, record_id)
        return None if record is None else cls._from_record(record)

    @classmethod
    async def find(
        cls: type[M], criteria: Mapping[str, Any] | None = None
    ) -> list[M]:
        return await cls.query().where(criteria or {}).find()

    @classmethod
    async def find_one(
        cls: type[M], criteria: Mapping[str, Any] | None = None
    ) -> M | None:
        return await cls.query().where(criteria or {}).find_one()

    @classmethod
    async def count(cls, criteria: Mapping[str, Any] | None = None) -> int:
        return await cls.query().where(criteria or {}).count()

    @classmethod
    async def sum(
        cls, field: str, criteria: Mapping[str, Any] | None = None
    ) -> int | float:
        return await cls.query().where(criteria or {}).sum(field)

    @classmethod
    async def remove_where(cls, criteria: Mapping[str, Any] | None = None) -> None:
        await cls.query().where(criteria or {}).remove()

    # -- query starters ------------------------------------------------------

    @classmethod
    def where(cls: type[M], key: Any, *args: Any) -> QueryBuilder[M]:
        return cls.query().where(key, *args)

    @classmethod
    def match(cls: type[M], field: str, pattern: Any) -> QueryBuilder[M]:
        return cls.query().match(field, pattern)

    @classmethod
    def elem(cls: type[M], field: str, match: Any) -> QueryBuilder[M]:
        return cls.query().elem(field, match)

    @classmethod
    def ne(cls: type[M], field: str, value: Any) -> QueryBuilder[M]:
        return cls.query().ne(field, value)

    @classmethod
    def nin(cls: type[M], field: str, values: Any) -> QueryBuilder[M]:
        return cls.query().nin(field, values)

    @classmethod
    def in_(cls: type[M], field: str, values: Any) -> QueryBuilder[M]:
        return cls.query().in_(field, values)

    @classmethod
    def or_(cls: type[M], *matches: Mapping[str, Any]) -> QueryBuilder[M]:
        return cls.query().or_(*matches)

    @classmethod
    def and_(cls: type[M], *matches: Mapping[str, Any]) -> QueryBuilder[M]:
        return cls.query().and_(*matches)

    @classmethod
    def gt(cls: type[M], field: str, value: Any) -> QueryBuilder[M]:
        return cls.query().gt(field, value)

    @classmethod
    def lt(cls: type[M], field: str, value: Any) -> QueryBuilder[M]:
        return cls.query().lt(field, value)

    @classmethod
    def gte(cls: type[M], field: str, value: Any) -> QueryBuilder[M]:
        return cls.query().gte(field, value)

    @classmethod
    def lte(cls: type[M], field: str, value: Any) -> QueryBuilder[M]:
        return cls.query().lte(field, value)

    @classmethod
    def limit(cls: type[M], count: int) -> QueryBuilder[M]:
        return cls.query().limit(count)

    @classmethod
    def skip(cls: type[M], count: int) -> QueryBuilder[M]:
        return cls.query().skip(count)

    @classmethod
    def sort(
        cls: type[M], field: str, direction: int | str = "desc"
    ) -> QueryBuilder[M]:
        return cls.query().sort(field, direction)

    # -- raw access ----------------------------------------------------------

    @classmethod
    async def raw_cursor(cls) -> Any:
        binding = cls.binding()
        return await binding.adapter.raw_cursor(binding.collection_id)

    @classmethod
    async def raw_table(cls) -> Any:
        binding = cls.binding()
        return await binding.adapter.raw_table(binding.collection_id)

    @classmethod
    async def raw_connection(cls) -> Any:
        return await cls.binding().adapter.raw_connection()
