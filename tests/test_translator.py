"""Tests for criteria → native SQL translation."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID

import pytest

from docdb_query import (
    CriteriaType,
    DocumentQuery,
    PageCursor,
    PageRequest,
    Proximity,
    QueryTranslationError,
    Sort,
    SqlQueryTranslator,
    and_,
    leaf,
    or_,
)
from docdb_query.translation import render_path


class Color(Enum):
    RED = "red"


@pytest.fixture
def translator() -> SqlQueryTranslator:
    return SqlQueryTranslator()


def _criteria(translator: SqlQueryTranslator, node):
    text, params = translator.translate_criteria(node)
    return text, {p.name: p.value for p in params}


# -- Operator table ----------------------------------------------------------


@pytest.mark.parametrize(
    ("op", "values", "expected"),
    [
        (CriteriaType.IS_EQUAL, [30], "r.age = @age0"),
        (CriteriaType.IS_LESS_THAN, [30], "r.age < @age0"),
        (CriteriaType.IS_LESS_THAN_OR_EQUAL, [30], "r.age <= @age0"),
        (CriteriaType.IS_GREATER_THAN, [30], "r.age > @age0"),
        (CriteriaType.IS_GREATER_THAN_OR_EQUAL, [30], "r.age >= @age0"),
        (CriteriaType.BETWEEN, [18, 65], "r.age BETWEEN @age0 AND @age1"),
        (CriteriaType.IN, [1, 2, 3], "r.age IN (@age0, @age1, @age2)"),
        (CriteriaType.EXISTS, [], "IS_DEFINED(r.age)"),
        (CriteriaType.IS_NULL, [], "IS_NULL(r.age)"),
        (CriteriaType.IS_EMPTY, [], "IS_EMPTY(r.age)"),
    ],
)
def test_value_operators(translator, op, values, expected):
    text, _ = _criteria(translator, leaf(op, "age", values))
    assert text == expected


@pytest.mark.parametrize(
    ("op", "expected"),
    [
        (CriteriaType.CONTAINING, "CONTAINS(r.name, @name0)"),
        (CriteriaType.STARTING_WITH, "STARTSWITH(r.name, @name0)"),
        (CriteriaType.ENDING_WITH, "ENDSWITH(r.name, @name0)"),
        (CriteriaType.LIKE, "r.name LIKE @name0"),
        (CriteriaType.REGEX, "RegexMatch(r.name, @name0)"),
    ],
)
def test_string_operators(translator, op, expected):
    text, params = _criteria(translator, leaf(op, "name", ["Ad"]))
    assert text == expected
    assert params == {"@name0": "Ad"}


def test_near(translator):
    node = leaf(CriteriaType.NEAR, "location", [Proximity((4.9, 52.3), 500.0)])
    text, params = _criteria(translator, node)
    assert text == "ST_DISTANCE(r.location, @location0) <= @location1"
    assert params == {
        "@location0": {"type": "Point", "coordinates": [4.9, 52.3]},
        "@location1": 500.0,
    }


def test_near_requires_proximity(translator):
    with pytest.raises(QueryTranslationError, match="Proximity"):
        translator.translate_criteria(leaf(CriteriaType.NEAR, "location", [(1, 2)]))


# -- Arity -------------------------------------------------------------------


@pytest.mark.parametrize(
    ("op", "values"),
    [
        (CriteriaType.IS_EQUAL, []),
        (CriteriaType.IS_EQUAL, [1, 2]),
        (CriteriaType.BETWEEN, [1]),
        (CriteriaType.BETWEEN, [1, 2, 3]),
        (CriteriaType.IN, []),
        (CriteriaType.EXISTS, [1]),
        (CriteriaType.NEAR, []),
    ],
)
def test_arity_mismatch_fails_whole_translation(translator, op, values):
    bad = leaf(op, "age", values)
    good = leaf(CriteriaType.IS_EQUAL, "name", ["x"])
    with pytest.raises(QueryTranslationError) as exc_info:
        translator.translate(DocumentQuery(criteria=and_(good, bad)))
    assert exc_info.value.operator == op.value
    assert exc_info.value.subject == "age"


# -- Composition -------------------------------------------------------------


def test_and_contains_both_children(translator):
    a = leaf(CriteriaType.IS_EQUAL, "last_name", ["Smith"])
    b = leaf(CriteriaType.IS_GREATER_THAN, "age", [18])
    text_a, params_a = _criteria(translator, a)
    text_b, params_b = _criteria(translator, b)
    text, params = _criteria(translator, and_(a, b))
    assert text == f"({text_a} AND {text_b})"
    assert params == {**params_a, **params_b}


def test_or_nesting_is_parenthesised(translator):
    a = leaf(CriteriaType.IS_EQUAL, "a", [1])
    b = leaf(CriteriaType.IS_EQUAL, "b", [2])
    c = leaf(CriteriaType.IS_EQUAL, "c", [3])
    text, _ = _criteria(translator, or_(and_(a, b), c))
    assert text == "((r.a = @a0 AND r.b = @b0) OR r.c = @c0)"


def test_same_subject_gets_distinct_parameters(translator):
    node = and_(
        leaf(CriteriaType.IS_GREATER_THAN, "age", [18]),
        leaf(CriteriaType.IS_LESS_THAN, "age", [65]),
    )
    text, params = _criteria(translator, node)
    assert text == "(r.age > @age0 AND r.age < @age1)"
    assert params == {"@age0": 18, "@age1": 65}


def test_negation_wraps_predicate_with_same_parameters(translator):
    plain = leaf(CriteriaType.IS_EQUAL, "status", ["active"])
    text, params = _criteria(translator, plain)
    negated_text, negated_params = _criteria(translator, ~plain)
    assert negated_text == f"NOT ({text})"
    assert negated_params == params


def test_negated_presence_check(translator):
    text, params = _criteria(translator, leaf(CriteriaType.IS_NULL, "email", negated=True))
    assert text == "NOT (IS_NULL(r.email))"
    assert params == {}


# -- Case folding ------------------------------------------------------------


def test_ignore_case_wraps_subject_and_values(translator):
    node = leaf(CriteriaType.IS_EQUAL, "name", ["Ada"], ignore_case=True)
    text, params = _criteria(translator, node)
    assert text == "LOWER(r.name) = LOWER(@name0)"
    assert params == {"@name0": "Ada"}


def test_ignore_case_in_list(translator):
    node = leaf(CriteriaType.IN, "name", ["a", "B"], ignore_case=True)
    text, _ = _criteria(translator, node)
    assert text == "LOWER(r.name) IN (LOWER(@name0), LOWER(@name1))"


def test_ignore_case_regex_passes_modifier(translator):
    node = leaf(CriteriaType.REGEX, "name", ["^a"], ignore_case=True)
    text, params = _criteria(translator, node)
    assert text == "RegexMatch(r.name, @name0, @name1)"
    assert params == {"@name0": "^a", "@name1": "i"}


def test_ignore_case_ignored_for_presence(translator):
    text, _ = _criteria(translator, leaf(CriteriaType.EXISTS, "name", ignore_case=True))
    assert text == "IS_DEFINED(r.name)"


def test_ignore_case_requires_strings(translator):
    with pytest.raises(QueryTranslationError, match="string values"):
        translator.translate_criteria(
            leaf(CriteriaType.IS_EQUAL, "age", [3], ignore_case=True)
        )


def test_string_operator_requires_string(translator):
    with pytest.raises(QueryTranslationError, match="string values"):
        translator.translate_criteria(leaf(CriteriaType.CONTAINING, "name", [3]))


# -- Paths and values --------------------------------------------------------


@pytest.mark.parametrize(
    ("subject", "expected"),
    [
        ("name", "r.name"),
        ("address.city", "r.address.city"),
        ("zip-code", 'r["zip-code"]'),
        ("value", 'r["value"]'),
        ("meta.order", 'r.meta["order"]'),
    ],
)
def test_render_path(subject, expected):
    assert render_path(subject) == expected


def test_empty_segment_is_rejected(translator):
    with pytest.raises(QueryTranslationError, match="empty path segment"):
        translator.translate_criteria(leaf(CriteriaType.EXISTS, "address..city"))


def test_nested_subject_parameter_name(translator):
    text, params = _criteria(translator, leaf(CriteriaType.IS_EQUAL, "address.city", ["Paris"]))
    assert text == "r.address.city = @address_city0"
    assert params == {"@address_city0": "Paris"}


def test_non_ascii_subject_parameter_name(translator):
    text, params = _criteria(translator, leaf(CriteriaType.IS_EQUAL, "città", ["Roma"]))
    assert text == 'r["citt\\u00e0"] = @citt_0'
    assert params == {"@citt_0": "Roma"}


def test_date_values_are_bound_as_epoch_millis(translator):
    _, params = _criteria(translator, leaf(CriteriaType.IS_EQUAL, "day", [date(2024, 1, 1)]))
    assert params == {"@day0": 1704067200000}


def test_values_are_bound_in_stored_form(translator):
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    node = and_(
        and_(
            leaf(CriteriaType.IS_EQUAL, "created", [moment]),
            leaf(CriteriaType.IS_EQUAL, "ref", [UUID("12345678-1234-5678-1234-567812345678")]),
        ),
        and_(
            leaf(CriteriaType.IS_EQUAL, "color", [Color.RED]),
            leaf(CriteriaType.IS_EQUAL, "price", [Decimal("1.50")]),
        ),
    )
    _, params = _criteria(translator, node)
    assert params["@created0"] == 1704067200000
    assert params["@ref0"] == "12345678-1234-5678-1234-567812345678"
    assert params["@color0"] == "red"
    assert params["@price0"] == "1.50"


def test_unbindable_value_is_a_translation_error(translator):
    with pytest.raises(QueryTranslationError, match="cannot be bound"):
        translator.translate_criteria(leaf(CriteriaType.IS_EQUAL, "x", [object()]))


# -- Statements --------------------------------------------------------------


def test_translate_without_criteria(translator):
    native = translator.translate(DocumentQuery())
    assert native.text == "SELECT * FROM ROOT r"
    assert native.parameters == ()
    assert native.max_item_count is None
    assert native.continuation is None


def test_translate_full_query(translator):
    query = DocumentQuery(
        criteria=leaf(CriteriaType.IS_EQUAL, "last_name", ["Smith"]),
        sort=Sort.by("last_name", "-age"),
        limit=10,
        partition_key="Smith",
    )
    native = translator.translate(query)
    assert native.text == (
        "SELECT TOP 10 * FROM ROOT r WHERE r.last_name = @last_name0 "
        "ORDER BY r.last_name ASC, r.age DESC"
    )
    assert native.partition_key == "Smith"
    assert native.parameter_dicts() == [{"name": "@last_name0", "value": "Smith"}]


def test_translate_page_hints(translator):
    cursor = PageCursor(index=1, size=25, token="abc")
    native = translator.translate(DocumentQuery(page=cursor))
    assert native.max_item_count == 25
    assert native.continuation == "abc"


def test_page_sort_wins_over_query_sort(translator):
    query = DocumentQuery(sort=Sort.by("age"), page=PageRequest(size=5, sort=Sort.by("-name")))
    assert translator.translate(query).text == "SELECT * FROM ROOT r ORDER BY r.name DESC"


def test_translate_count_drops_sort_and_page(translator):
    query = DocumentQuery(
        criteria=leaf(CriteriaType.EXISTS, "email"),
        sort=Sort.by("age"),
        page=PageRequest(size=5),
    )
    native = translator.translate_count(query)
    assert native.text == "SELECT VALUE COUNT(1) FROM ROOT r WHERE IS_DEFINED(r.email)"
    assert native.max_item_count is None


def test_translate_exists(translator):
    native = translator.translate_exists(DocumentQuery(criteria=leaf(CriteriaType.EXISTS, "a")))
    assert native.text == "SELECT TOP 1 * FROM ROOT r WHERE IS_DEFINED(r.a)"
    assert native.max_item_count == 1


def test_translation_is_deterministic(translator):
    query = DocumentQuery(criteria=leaf(CriteriaType.IN, "id", ["1", "2"]))
    assert translator.translate(query) == translator.translate(query)
