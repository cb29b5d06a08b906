"""Tests for the blocking DocumentOperations facade."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone

import pytest
from entities import Address, City, Memo, Note, Person, RecordingStore

from docdb_query import (
    CollectionNotFoundError,
    CollectionSpec,
    CriteriaBuilder,
    CriteriaType,
    DocumentDbConfig,
    DocumentOperations,
    DocumentQuery,
    InMemoryStoreClient,
    InvalidPaginationStateError,
    PageCursor,
    PageRequest,
    PartitionKeyRequiredError,
    Sort,
    StoreBadRequestError,
    StoreConflictError,
    leaf,
)
from docdb_query.mapping import to_epoch_millis


def _ids(entities) -> list[str]:
    return [e.id for e in entities]


# -- Collections -------------------------------------------------------------


def test_ensure_collection_creates_once(store: RecordingStore):
    ops = DocumentOperations(store)  # type: ignore[arg-type]
    spec = ops.ensure_collection(Person)
    assert spec.name == "people"
    assert spec.partition_key_path == "/last_name"
    assert ops.ensure_collection(Person) == spec
    assert store.names() == ["read_collection", "create_collection"]


def test_ensure_collection_uses_existing(memory_store: InMemoryStoreClient):
    memory_store.create_collection(CollectionSpec("people", partition_key_path="/last_name"))
    store = RecordingStore(memory_store)
    DocumentOperations(store).ensure_collection(Person)  # type: ignore[arg-type]
    assert store.names() == ["read_collection"]


def test_concurrent_ensure_collection():
    memory_store = InMemoryStoreClient()
    barrier = threading.Barrier(8)
    seen = threading.local()

    class RacingStore(RecordingStore):
        def read_collection(self, name):
            # Hold every thread until all have missed the cache.
            if not getattr(seen, "waited", False):
                seen.waited = True
                barrier.wait(timeout=5)
            return self.inner.read_collection(name)

    ops = DocumentOperations(RacingStore(memory_store))  # type: ignore[arg-type]
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: ops.ensure_collection(Memo), range(8)))
    assert {r.name for r in results} == {"memos"}
    assert memory_store.read_collection("memos") is not None


def test_ensure_collection_with_spec(ops: DocumentOperations):
    spec = ops.ensure_collection(CollectionSpec("raw"))
    assert ops.store.read_collection("raw") == spec


def test_delete_collection_clears_cache(ops: DocumentOperations, store: RecordingStore):
    ops.delete_collection(Note)
    assert store.inner.read_collection("Note") is None
    ops.ensure_collection(Note)
    assert store.inner.read_collection("Note") is not None
    with pytest.raises(CollectionNotFoundError):
        ops.delete_collection("missing")


def test_get_collection_name(ops: DocumentOperations):
    assert ops.get_collection_name(Person) == "people"
    assert ops.get_collection_name(Note) == "Note"


# -- Point operations --------------------------------------------------------


def test_insert_and_find_by_id(ops: DocumentOperations, people):
    ops.insert(people[0])
    assert ops.find_by_id(Person, "1", partition_key="Lovelace") == people[0]
    assert ops.find_by_id(Person, "1", partition_key="Turing") is None


def test_insert_duplicate_conflicts(ops: DocumentOperations, people):
    ops.insert(people[0])
    with pytest.raises(StoreConflictError):
        ops.insert(people[0])


def test_upsert_overwrites(ops: DocumentOperations, people):
    ops.insert(people[0])
    updated = people[0].model_copy(update={"age": 99})
    assert ops.upsert(updated).age == 99
    assert ops.find_by_id(Person, "1", partition_key="Lovelace").age == 99


def test_partitioned_point_reads_need_partition_key(ops: DocumentOperations, store):
    with pytest.raises(PartitionKeyRequiredError) as exc_info:
        ops.find_by_id(Person, "1")
    assert exc_info.value.partition_key_path == "/last_name"
    with pytest.raises(PartitionKeyRequiredError):
        ops.delete_by_id(Person, "1")
    assert store.calls == []


def test_write_partition_key_must_match_entity(ops: DocumentOperations, people):
    with pytest.raises(StoreBadRequestError, match="does not match"):
        ops.insert(people[0], partition_key="Turing")
    ops.insert(people[0], partition_key="Lovelace")


def test_unpartitioned_point_operations(ops: DocumentOperations):
    ops.insert(Note(id="n1", text="hello"))
    assert ops.find_by_id(Note, "n1") == Note(id="n1", text="hello")
    ops.delete_by_id(Note, "n1")
    assert ops.find_by_id(Note, "n1") is None


def test_custom_id_field_round_trip(ops: DocumentOperations):
    ops.insert(Address(postal_code="1011", city="Amsterdam"))
    assert ops.find_by_id(Address, "1011").city == "Amsterdam"


# -- Queries -----------------------------------------------------------------


def test_find_with_criteria_and_sort(populated: DocumentOperations):
    query = DocumentQuery(
        criteria=leaf(CriteriaType.IS_GREATER_THAN, "age", [50]),
        sort=Sort.by("-age"),
    )
    assert _ids(populated.find(query, Person)) == ["3", "5", "4"]


def test_find_ignore_case(populated: DocumentOperations):
    query = DocumentQuery(
        criteria=leaf(CriteriaType.STARTING_WITH, "first_name", ["a"], ignore_case=True)
    )
    assert _ids(populated.find(query, Person)) == ["1", "2"]


def test_find_negated_leaf(populated: DocumentOperations):
    query = DocumentQuery(criteria=leaf(CriteriaType.IS_EMPTY, "email", negated=True))
    assert _ids(populated.find(query, Person)) == ["2"]


def test_find_with_builder(populated: DocumentOperations):
    criteria = (
        CriteriaBuilder()
        .or_group()
        .where("last_name", "is_equal", "Hopper")
        .where("last_name", "is_equal", "Turing")
        .end_group()
        .where("age", "is_less_than", 80)
        .build()
    )
    assert _ids(populated.find(DocumentQuery(criteria=criteria), Person)) == ["2"]


def test_find_drains_every_page(populated: DocumentOperations, store: RecordingStore):
    small = DocumentOperations(store, config=DocumentDbConfig(default_page_size=2))  # type: ignore[arg-type]
    assert _ids(small.find_all(Person)) == ["1", "2", "3", "4", "5"]
    assert store.names().count("query") == 3


def test_find_all_in_partition(populated: DocumentOperations):
    assert _ids(populated.find_all(Person, partition_key="Hopper")) == ["3"]


def test_find_by_ids(populated: DocumentOperations):
    assert _ids(populated.find_by_ids(Person, ["4", "2", "missing"])) == ["2", "4"]
    assert populated.find_by_ids(Person, []) == []


def test_find_one(populated: DocumentOperations):
    query = DocumentQuery(sort=Sort.by("age"))
    assert populated.find_one(query, Person).id == "1"
    none = DocumentQuery(criteria=leaf(CriteriaType.IS_EQUAL, "age", [0]))
    assert populated.find_one(none, Person) is None


def test_exists_and_count(populated: DocumentOperations):
    adults = DocumentQuery(criteria=leaf(CriteriaType.BETWEEN, "age", [40, 80]))
    assert populated.exists(adults, Person) is True
    assert populated.count_matching(adults, Person) == 2
    assert populated.count(Person) == 5
    nobody = DocumentQuery(criteria=leaf(CriteriaType.IS_GREATER_THAN, "age", [200]))
    assert populated.exists(nobody, Person) is False


def test_cross_partition_disabled(store: RecordingStore):
    ops = DocumentOperations(
        store,  # type: ignore[arg-type]
        config=DocumentDbConfig(enable_cross_partition_query=False),
    )
    with pytest.raises(PartitionKeyRequiredError):
        ops.find(DocumentQuery(), Person)
    assert store.calls == []


# -- Paging ------------------------------------------------------------------


def test_pages_of_two_over_five(populated: DocumentOperations):
    query = DocumentQuery(sort=Sort.by("age"), page=PageRequest(size=2))
    sizes = []
    ids = []
    page = populated.find_page(query, Person)
    while True:
        sizes.append(len(page))
        ids.extend(_ids(page))
        if page.next_cursor is None:
            break
        page = populated.find_page(query.with_page(page.next_cursor), Person)
    assert sizes == [2, 2, 1]
    assert ids == ["1", "2", "4", "5", "3"]
    assert page.is_last
    assert page.number == 2


def test_non_first_page_without_token_makes_no_store_call(
    populated: DocumentOperations, store: RecordingStore
):
    query = DocumentQuery(page=PageRequest(index=1, size=2))
    with pytest.raises(InvalidPaginationStateError) as exc_info:
        populated.find_page(query, Person)
    assert exc_info.value.has_continuation is False
    assert store.calls == []


def test_find_page_requires_page(populated: DocumentOperations, store: RecordingStore):
    with pytest.raises(InvalidPaginationStateError):
        populated.find_page(DocumentQuery(), Person)
    assert store.calls == []


def test_replayed_cursor_on_other_query_is_rejected(populated: DocumentOperations):
    first = populated.find_page(DocumentQuery(page=PageRequest(size=2)), Person)
    other = DocumentQuery(criteria=leaf(CriteriaType.EXISTS, "email"), page=first.next_cursor)
    with pytest.raises(InvalidPaginationStateError):
        populated.find_page(other, Person)


def test_independent_sequences_do_not_interfere(populated: DocumentOperations):
    by_age = DocumentQuery(sort=Sort.by("age"), page=PageRequest(size=2))
    by_name = DocumentQuery(sort=Sort.by("first_name"), page=PageRequest(size=2))
    a1 = populated.find_page(by_age, Person)
    b1 = populated.find_page(by_name, Person)
    a2 = populated.find_page(by_age.with_page(a1.next_cursor), Person)
    b2 = populated.find_page(by_name.with_page(b1.next_cursor), Person)
    assert _ids(a2) == ["4", "5"]
    assert _ids(b2) == ["5", "4"]


def test_page_sort_overrides_query_sort(populated: DocumentOperations):
    query = DocumentQuery(sort=Sort.by("age"), page=PageRequest(size=5, sort=Sort.by("-age")))
    assert _ids(populated.find_page(query, Person)) == ["3", "5", "4", "2", "1"]


def test_find_all_page(populated: DocumentOperations):
    page = populated.find_all_page(Person, PageCursor(size=3))
    assert len(page) == 3
    assert page.has_next
    default = populated.find_all_page(Person)
    assert len(default) == 5
    assert default.is_last


def test_limit_caps_paged_results(populated: DocumentOperations):
    query = DocumentQuery(sort=Sort.by("age"), page=PageRequest(size=2), limit=3)
    first = populated.find_page(query, Person)
    second = populated.find_page(query.with_page(first.next_cursor), Person)
    assert _ids(first) + _ids(second) == ["1", "2", "4"]
    assert second.is_last


# -- Deletes -----------------------------------------------------------------


def test_delete_matching_returns_deleted(populated: DocumentOperations):
    query = DocumentQuery(criteria=leaf(CriteriaType.IS_GREATER_THAN, "age", [80]))
    deleted = populated.delete(query, Person)
    assert _ids(deleted) == ["3", "5"]
    assert populated.count(Person) == 3


def test_delete_all(populated: DocumentOperations):
    populated.delete_all(Person)
    assert populated.count(Person) == 0


def test_datetime_query_values(ops: DocumentOperations):
    for day in (1, 2, 3):
        ops.insert(
            Memo(id=f"m{day}", title="t", created_at=datetime(2024, 1, day, tzinfo=timezone.utc))
        )
    query = DocumentQuery(
        criteria=leaf(
            CriteriaType.IS_GREATER_THAN_OR_EQUAL,
            "created_at",
            [datetime(2024, 1, 2, tzinfo=timezone.utc)],
        ),
        sort=Sort.by("created_at"),
    )
    assert _ids(ops.find(query, Memo)) == ["m2", "m3"]


def test_non_ascii_subject_query(ops: DocumentOperations):
    ops.insert(City(id="c1", città="Roma"))
    ops.insert(City(id="c2", città="Milano"))
    query = DocumentQuery(criteria=leaf(CriteriaType.IS_EQUAL, "città", ["Roma"]))
    assert _ids(ops.find(query, City)) == ["c1"]
    assert ops.exists(query, City) is True
    assert ops.count_matching(query, City) == 1
    page = ops.find_page(query.with_page(PageRequest(size=1)), City)
    assert _ids(page) == ["c1"]


def test_date_fields_and_query_values(ops: DocumentOperations):
    ops.insert(City(id="c1", città="Roma", founded=date(1871, 7, 1)))
    ops.insert(City(id="c2", città="Milano", founded=date(1946, 6, 2)))
    stored = ops.store.read_item("cities", "c1")
    assert stored["founded"] == to_epoch_millis(datetime(1871, 7, 1, tzinfo=timezone.utc))
    assert ops.find_by_id(City, "c2").founded == date(1946, 6, 2)
    modern = leaf(CriteriaType.IS_GREATER_THAN, "founded", [date(1900, 1, 1)])
    query = DocumentQuery(criteria=modern)
    assert _ids(ops.find(query, City)) == ["c2"]
