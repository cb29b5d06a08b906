"""Tests for the future-returning AsyncDocumentOperations adapter."""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio
from entities import Note, Person, RecordingStore

from docdb_query import (
    AsyncDocumentOperations,
    CriteriaType,
    DocumentOperations,
    DocumentQuery,
    InvalidPaginationStateError,
    PageRequest,
    ResultShape,
    Sort,
    StoreConflictError,
    leaf,
)


@pytest_asyncio.fixture
async def aops(populated: DocumentOperations):
    async with AsyncDocumentOperations(populated) as adapter:
        yield adapter


@pytest.mark.asyncio
async def test_calls_return_futures(aops: AsyncDocumentOperations):
    future = aops.count(Person)
    assert isinstance(future, asyncio.Future)
    assert await future == 5


@pytest.mark.asyncio
async def test_point_operations(aops: AsyncDocumentOperations):
    await aops.ensure_collection(Note)
    await aops.insert(Note(id="n1", text="a"))
    await aops.upsert(Note(id="n1", text="b"))
    assert (await aops.find_by_id(Note, "n1")).text == "b"
    with pytest.raises(StoreConflictError):
        await aops.insert(Note(id="n1", text="c"))
    await aops.delete_by_id(Note, "n1")
    assert await aops.find_by_id(Note, "n1") is None


@pytest.mark.asyncio
async def test_queries(aops: AsyncDocumentOperations):
    query = DocumentQuery(
        criteria=leaf(CriteriaType.IS_LESS_THAN, "age", [50]), sort=Sort.by("-age")
    )
    assert [p.id for p in await aops.find(query, Person)] == ["2", "1"]
    assert (await aops.find_one(query, Person)).id == "2"
    assert await aops.exists(query, Person) is True
    assert await aops.count_matching(query, Person) == 2
    assert [p.id for p in await aops.find_by_ids(Person, ["3", "1"])] == ["1", "3"]
    assert len(await aops.find_all(Person, partition_key="Liskov")) == 1
    assert await aops.execute(query, Person, ResultShape.COUNT) == 2


@pytest.mark.asyncio
async def test_concurrent_calls(aops: AsyncDocumentOperations):
    results = await asyncio.gather(*(aops.count(Person) for _ in range(10)))
    assert results == [5] * 10


@pytest.mark.asyncio
async def test_invalid_page_raises_before_future(
    aops: AsyncDocumentOperations, store: RecordingStore
):
    with pytest.raises(InvalidPaginationStateError):
        aops.find_page(DocumentQuery(page=PageRequest(index=1, size=2)), Person)
    with pytest.raises(InvalidPaginationStateError):
        aops.find_all_page(Person, PageRequest(index=2, size=2))
    assert store.calls == []


@pytest.mark.asyncio
async def test_pages(aops: AsyncDocumentOperations):
    query = DocumentQuery(sort=Sort.by("age"))
    sizes = [len(page) async for page in aops.pages(query, Person, page_size=2)]
    assert sizes == [2, 2, 1]


@pytest.mark.asyncio
async def test_find_all_page(aops: AsyncDocumentOperations):
    page = await aops.find_all_page(Person, PageRequest(size=4))
    assert len(page) == 4
    assert page.has_next


@pytest.mark.asyncio
async def test_search_await_and_stream(aops: AsyncDocumentOperations):
    query = DocumentQuery(sort=Sort.by("age"))
    result = aops.search(query, Person)
    assert [p.id for p in await result] == ["1", "2", "4", "5", "3"]
    streamed = [p.id async for p in aops.search(query, Person).stream(batch_size=2)]
    assert streamed == ["1", "2", "4", "5", "3"]
    pages = [page async for page in aops.search(query, Person).pages(page_size=3)]
    assert [[p.id for p in page] for page in pages] == [["1", "2", "4"], ["5", "3"]]
    assert pages[-1].next_cursor is None


@pytest.mark.asyncio
async def test_delete(aops: AsyncDocumentOperations):
    query = DocumentQuery(criteria=leaf(CriteriaType.IS_EQUAL, "last_name", ["Hopper"]))
    deleted = await aops.delete(query, Person)
    assert [p.id for p in deleted] == ["3"]
    await aops.delete_all(Person)
    assert await aops.count(Person) == 0


@pytest.mark.asyncio
async def test_delete_collection(aops: AsyncDocumentOperations):
    await aops.delete_collection(Note)
    assert aops.operations.store.read_collection("Note") is None


@pytest.mark.asyncio
async def test_leaving_context_waits_for_in_flight_calls(populated: DocumentOperations):
    async with AsyncDocumentOperations(populated) as adapter:
        pending = adapter.count(Person)
    assert pending.done()
    assert await pending == 5
    with pytest.raises(RuntimeError):
        await adapter.count(Person)
