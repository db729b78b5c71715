"""Adapter configuration objects."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class MongoConfig(BaseModel):
    """Connection settings for :class:`~polystore.adapters.mongo.MongoAdapter`."""

    model_config = ConfigDict(frozen=True)

    url: str = "mongodb://localhost:27017"
    database: str = "polystore"
    server_selection_timeout_ms: int = Field(default=5000, gt=0)
    connect_timeout_ms: int = Field(default=10000, gt=0)


class RethinkConfig(BaseModel):
    """Connection settings for :class:`~polystore.adapters.rethink.RethinkAdapter`."""

    model_config = ConfigDict(frozen=True)

    host: str = "localhost"
    port: int = Field(default=28015, gt=0, lt=65536)
    db: str = "polystore"
    user: str = "admin"
    password: str = ""
    timeout: int = Field(default=20, gt=0)
