"""Tests for result-shape strategy dispatch."""

from __future__ import annotations

import pytest
from entities import Person, RecordingStore

from docdb_query import (
    CriteriaType,
    DocumentOperations,
    DocumentQuery,
    InvalidPaginationStateError,
    Page,
    PageCursor,
    PageRequest,
    ResultShape,
    Sort,
    leaf,
)
from docdb_query.execution import (
    count,
    delete_matching,
    dispatch,
    exists,
    list_all,
    paged_fetch,
    single_entity,
)


@pytest.mark.parametrize(
    ("shape", "strategy"),
    [
        (ResultShape.SINGLE, single_entity),
        (ResultShape.LIST, list_all),
        (ResultShape.BOOLEAN, exists),
        (ResultShape.COUNT, count),
        ("list", list_all),
    ],
)
def test_dispatch_selects_strategy(shape, strategy):
    execution = dispatch(DocumentQuery(), shape)
    assert execution.strategy is strategy
    assert execution.delete is False


def test_dispatch_page_shape():
    execution = dispatch(DocumentQuery(page=PageRequest(size=2)), ResultShape.PAGE)
    assert execution.strategy is paged_fetch


def test_delete_intent_wins():
    execution = dispatch(DocumentQuery(), ResultShape.LIST, delete=True)
    assert execution.strategy is delete_matching
    assert execution.delete is True


def test_page_shape_without_page_fails():
    with pytest.raises(InvalidPaginationStateError):
        dispatch(DocumentQuery(), ResultShape.PAGE)


def test_page_shape_without_token_fails_before_store(
    populated: DocumentOperations, store: RecordingStore
):
    query = DocumentQuery(page=PageRequest(index=3, size=2))
    with pytest.raises(InvalidPaginationStateError):
        populated.execute(query, Person, ResultShape.PAGE)
    assert store.calls == []


def test_unknown_shape():
    with pytest.raises(ValueError):
        dispatch(DocumentQuery(), "table")


def test_execute_every_shape(populated: DocumentOperations):
    query = DocumentQuery(
        criteria=leaf(CriteriaType.IS_GREATER_THAN, "age", [70]), sort=Sort.by("age")
    )
    assert populated.execute(query, Person, ResultShape.SINGLE).id == "4"
    assert [p.id for p in populated.execute(query, Person)] == ["4", "5", "3"]
    assert populated.execute(query, Person, "boolean") is True
    assert populated.execute(query, Person, ResultShape.COUNT) == 3

    page = populated.execute(query.with_page(PageCursor(size=2)), Person, ResultShape.PAGE)
    assert isinstance(page, Page)
    assert [p.id for p in page] == ["4", "5"]
    assert page.has_next


def test_execute_delete(populated: DocumentOperations):
    query = DocumentQuery(criteria=leaf(CriteriaType.IS_EQUAL, "last_name", ["Turing"]))
    deleted = populated.execute(query, Person, delete=True)
    assert [p.id for p in deleted] == ["2"]
    assert populated.count(Person) == 4
