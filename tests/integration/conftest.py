"""Real-server fixtures (testcontainers). Tests here are marked ``integration``."""

import pytest

from polystore.config import MongoConfig, RethinkConfig


@pytest.fixture(scope="module")
def mongo_container():
    """Create a MongoDB container using testcontainers."""
    pytest.importorskip("testcontainers")

    from testcontainers.mongodb import MongoDbContainer

    with MongoDbContainer("mongo:7.0") as mongo:
        yield mongo


@pytest.fixture(scope="module")
def rethink_container():
    """Create a RethinkDB container; testcontainers has no dedicated module."""
    pytest.importorskip("testcontainers")

    from testcontainers.core.container import DockerContainer
    from testcontainers.core.waiting_utils import wait_for_logs

    container = DockerContainer("rethinkdb:2.4").with_exposed_ports(28015)
    with container:
        wait_for_logs(container, "Server ready", timeout=60)
        yield container


@pytest.fixture(params=["mongo", "rethink"])
async def real_adapter(request):
    """A connected adapter per backend, on a real server."""
    if request.param == "mongo":
        from polystore.adapters.mongo import MongoAdapter

        container = request.getfixturevalue("mongo_container")
        adapter = MongoAdapter(
            MongoConfig(url=container.get_connection_url(), database="test_db")
        )
    else:
        from polystore.adapters.rethink import RethinkAdapter

        container = request.getfixturevalue("rethink_container")
        adapter = RethinkAdapter(
            RethinkConfig(
                host=container.get_container_host_ip(),
                port=int(container.get_exposed_port(28015)),
                db="test_db",
            )
        )
    await adapter.ready()
    yield adapter
    await adapter.close()
