"""Unit tests for adapter configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from polystore.config import MongoConfig, RethinkConfig


def test_mongo_defaults() -> None:
    config = MongoConfig()
    assert config.url == "mongodb://localhost:27017"
    assert config.database == "polystore"


def test_rethink_defaults() -> None:
    config = RethinkConfig()
    assert (config.host, config.port, config.db) == ("localhost", 28015, "polystore")


def test_configs_are_frozen() -> None:
    config = MongoConfig()
    with pytest.raises(ValidationError):
        config.database = "other"


@pytest.mark.parametrize("port", [0, 70000])
def test_rethink_port_is_validated(port) -> None:
    with pytest.raises(ValidationError):
        RethinkConfig(port=port)


def test_mongo_timeout_is_validated() -> None:
    with pytest.raises(ValidationError):
        MongoConfig(server_selection_timeout_ms=0)
