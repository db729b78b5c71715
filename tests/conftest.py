"""Test configuration for polystore."""

import pytest

from polystore.adapters.mongo import MongoAdapter, MongoConnectionManager
from polystore.config import MongoConfig

pytest_plugins = ["pytest_asyncio"]


@pytest.fixture
def mongo_connection():
    """A connection manager wrapping mongomock-motor instead of a real server."""
    from mongomock_motor import AsyncMongoMockClient

    connection = MongoConnectionManager("mongodb://mock:27017")
    connection._client = AsyncMongoMockClient()
    return connection


@pytest.fixture
async def mongo_adapter(mongo_connection):
    """A MongoAdapter over mongomock with the ``docs`` collection ensured."""
    adapter = MongoAdapter(
        MongoConfig(url="mongodb://mock:27017", database="test_db"),
        connection=mongo_connection,
    )
    await adapter.ensure_collection("docs")
    return adapter
