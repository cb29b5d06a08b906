from pytest_archon import archrule


def test_criteria_independence() -> None:
    """
    Criteria trees are the foundation and must stay free of translation,
    store and data-access code.
    """
    (
        archrule("criteria_is_independent")
        .match("docdb_query.criteria*")
        .should_not_import("docdb_query.translation*")
        .should_not_import("docdb_query.store*")
        .should_not_import("docdb_query.sql*")
        .should_not_import("docdb_query.operations")
        .should_not_import("docdb_query.aio")
        .check("docdb_query")
    )


def test_sql_dialect_isolation() -> None:
    """
    The SQL parser and evaluator only know the native dialect, not the
    criteria model that produces it.
    """
    (
        archrule("sql_isolation")
        .match("docdb_query.sql*")
        .should_not_import("docdb_query.criteria*")
        .should_not_import("docdb_query.translation*")
        .should_not_import("docdb_query.mapping*")
        .should_not_import("docdb_query.store*")
        .should_not_import("docdb_query.operations")
        .check("docdb_query")
    )


def test_translation_layering() -> None:
    """Translation produces native queries but never runs them."""
    (
        archrule("translation_layering")
        .match("docdb_query.translation*")
        .should_not_import("docdb_query.store*")
        .should_not_import("docdb_query.sql*")
        .should_not_import("docdb_query.operations")
        .should_not_import("docdb_query.aio")
        .check("docdb_query")
    )


def test_ports_layering() -> None:
    """
    Ports (interfaces) should not depend on store implementations.
    """
    (
        archrule("ports_layering")
        .match("docdb_query.ports*")
        .should_not_import("docdb_query.store*")
        .should_not_import("docdb_query.operations")
        .check("docdb_query", skip_type_checking=True)
    )


def test_stores_do_not_reach_the_facade() -> None:
    """Store clients sit below the data-access facade."""
    (
        archrule("stores_below_facade")
        .match("docdb_query.store*")
        .should_not_import("docdb_query.operations")
        .should_not_import("docdb_query.aio")
        .should_not_import("docdb_query.criteria*")
        .should_not_import("docdb_query.mapping*")
        .check("docdb_query", skip_type_checking=True)
    )


def test_memory_store_has_no_driver_dependency() -> None:
    """The in-memory store must work without the MongoDB driver installed."""
    (
        archrule("memory_store_no_driver")
        .match("docdb_query.store.memory")
        .match("docdb_query.store.tokens")
        .should_not_import("pymongo*")
        .should_not_import("docdb_query.store.mongo*")
        .check("docdb_query", skip_type_checking=True)
    )
