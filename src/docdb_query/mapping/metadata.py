"""
Entity metadata: which collection a type lives in and how it is keyed.

Types opt in with the :func:`document` decorator::

    @document(collection="people", partition_key="last_name")
    class Person(BaseModel):
        id: str
        last_name: str

Undecorated types map to a collection named after the class, keyed on
``id`` and not partitioned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, TypeVar

from ..ports.store import CollectionSpec, IndexingMode, IndexingPolicy

T = TypeVar("T")

_SETTINGS_ATTR = "__docdb_document__"


@dataclass(frozen=True)
class DocumentSettings:
    collection: str | None = None
    id_field: str = "id"
    partition_key: str | None = None
    indexing_policy: IndexingPolicy = field(default_factory=IndexingPolicy)


def document(
    collection: str | None = None,
    *,
    id_field: str = "id",
    partition_key: str | None = None,
    indexing_policy: IndexingPolicy | None = None,
) -> Callable[[type[T]], type[T]]:
    """Class decorator attaching collection settings to an entity type."""

    def decorate(cls: type[T]) -> type[T]:
        setattr(
            cls,
            _SETTINGS_ATTR,
            DocumentSettings(
                collection=collection,
                id_field=id_field,
                partition_key=partition_key,
                indexing_policy=indexing_policy or IndexingPolicy(),
            ),
        )
        return cls

    return decorate


@dataclass(frozen=True)
class EntityInformation:
    """Resolved, immutable metadata for one entity type."""

    entity_type: type[Any]
    collection: str
    id_field: str = "id"
    partition_key_field: str | None = None
    indexing_policy: IndexingPolicy = field(default_factory=IndexingPolicy)

    @classmethod
    def of(cls, entity_type: type[Any]) -> EntityInformation:
        return _resolve(entity_type)

    @property
    def is_partitioned(self) -> bool:
        return self.partition_key_field is not None

    @property
    def partition_key_path(self) -> str | None:
        if self.partition_key_field is None:
            return None
        return "/" + self.partition_key_field.replace(".", "/")

    def id_of(self, entity: Any) -> Any:
        return getattr(entity, self.id_field, None)

    def partition_key_of(self, entity: Any) -> Any:
        """Read the partition key value off an entity, following dot paths."""
        if self.partition_key_field is None:
            return None
        value = entity
        for part in self.partition_key_field.split("."):
            if value is None:
                return None
            value = value.get(part) if isinstance(value, dict) else getattr(value, part, None)
        return value

    def collection_spec(self) -> CollectionSpec:
        return CollectionSpec(
            name=self.collection,
            partition_key_path=self.partition_key_path,
            indexing_policy=self.indexing_policy,
        )


@lru_cache(maxsize=None)
def _resolve(entity_type: type[Any]) -> EntityInformation:
    settings: DocumentSettings = getattr(entity_type, _SETTINGS_ATTR, None) or DocumentSettings()
    fields = getattr(entity_type, "model_fields", None)
    if fields is not None and settings.id_field not in fields:
        raise ValueError(
            f"{entity_type.__name__} has no id field '{settings.id_field}'"
        )
    return EntityInformation(
        entity_type=entity_type,
        collection=settings.collection or entity_type.__name__,
        id_field=settings.id_field,
        partition_key_field=settings.partition_key,
        indexing_policy=settings.indexing_policy,
    )


__all__ = [
    "DocumentSettings",
    "EntityInformation",
    "IndexingMode",
    "IndexingPolicy",
    "document",
]
