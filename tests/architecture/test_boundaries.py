from pytest_archon import archrule


def test_query_independence() -> None:
    """
    The query algebra is backend-neutral.
    It must not import any adapter or driver.
    """
    (
        archrule("query_is_independent")
        .match("polystore.query*")
        .should_not_import("polystore.adapters*")
        .should_not_import("polystore.model")
        .should_not_import("motor*")
        .should_not_import("pymongo*")
        .should_not_import("rethinkdb*")
        .check("polystore")
    )


def test_mongo_does_not_import_rethink() -> None:
    (
        archrule("mongo_isolation")
        .match("polystore.adapters.mongo*")
        .should_not_import("polystore.adapters.rethink*")
        .should_not_import("rethinkdb*")
        .check("polystore.adapters.mongo")
    )


def test_rethink_does_not_import_mongo() -> None:
    (
        archrule("rethink_isolation")
        .match("polystore.adapters.rethink*")
        .should_not_import("polystore.adapters.mongo*")
        .should_not_import("motor*")
        .should_not_import("pymongo*")
        .check("polystore.adapters.rethink")
    )


def test_model_layer_is_backend_neutral() -> None:
    """
    The model layer talks to adapters only through the port.
    """
    (
        archrule("model_uses_port")
        .match("polystore.model")
        .should_not_import("polystore.adapters*")
        .check("polystore")
    )
