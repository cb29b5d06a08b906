"""Shared fixtures for docdb-query tests."""

from __future__ import annotations

import pytest
from entities import Address, City, Memo, Note, Person, RecordingStore

from docdb_query import DocumentOperations, InMemoryStoreClient


@pytest.fixture
def memory_store() -> InMemoryStoreClient:
    return InMemoryStoreClient()


@pytest.fixture
def store(memory_store: InMemoryStoreClient) -> RecordingStore:
    return RecordingStore(memory_store)


@pytest.fixture
def ops(store: RecordingStore) -> DocumentOperations:
    operations = DocumentOperations(store)  # type: ignore[arg-type]
    for entity_type in (Person, Memo, Address, Note, City):
        operations.ensure_collection(entity_type)
    store.calls.clear()
    return operations


@pytest.fixture
def people() -> list[Person]:
    return [
        Person(id="1", first_name="Ada", last_name="Lovelace", age=36, tags=["math"]),
        Person(id="2", first_name="Alan", last_name="Turing", age=41, email="alan@example.com"),
        Person(id="3", first_name="Grace", last_name="Hopper", age=85, tags=["navy", "cobol"]),
        Person(id="4", first_name="Edsger", last_name="Dijkstra", age=72),
        Person(id="5", first_name="Barbara", last_name="Liskov", age=84, email=""),
    ]


@pytest.fixture
def populated(ops: DocumentOperations, store: RecordingStore, people: list[Person]):
    for person in people:
        ops.insert(person)
    store.calls.clear()
    return ops
