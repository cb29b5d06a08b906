"""Pydantic model <-> store document round-trip (datetimes and dates as epoch millis)."""

from __future__ import annotations

import types
from datetime import date, datetime, time, timedelta, timezone
from typing import Annotated, Any, TypeVar, Union, get_args, get_origin

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from ..exceptions import DocumentConversionError
from .metadata import EntityInformation

TModel = TypeVar("TModel", bound=BaseModel)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# System properties the store adds to every document.
INTERNAL_KEYS: frozenset[str] = frozenset(
    {"_rid", "_self", "_etag", "_attachments", "_ts", "_id"}
)


def to_epoch_millis(value: datetime) -> int:
    """Milliseconds since the Unix epoch. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(millis: int | float) -> datetime:
    return EPOCH + timedelta(milliseconds=millis)


def date_to_epoch_millis(value: date) -> int:
    """Milliseconds since the Unix epoch at UTC midnight of ``value``."""
    return to_epoch_millis(datetime.combine(value, time.min, tzinfo=timezone.utc))


def _millis(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_epoch_millis(value)
    if isinstance(value, date):
        return date_to_epoch_millis(value)
    if isinstance(value, dict):
        return {k: _millis(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_millis(v) for v in value]
    return value


def to_document_value(value: Any) -> Any:
    """
    Convert a Python value to its stored form.

    Datetimes and dates become epoch milliseconds; everything else follows pydantic's
    JSON-compatible conversion (UUID and Decimal to str, Enum to its value).
    """
    return to_jsonable_python(_millis(value))


def _restore(value: Any, annotation: Any) -> Any:
    """Turn stored epoch millis back into datetimes and dates wherever the type says so."""
    if value is None or annotation is Any:
        return value
    origin = get_origin(annotation)
    if origin is Annotated:
        return _restore(value, get_args(annotation)[0])
    if origin is Union or origin is types.UnionType:
        for arg in get_args(annotation):
            if arg is type(None):
                continue
            restored = _restore(value, arg)
            if restored is not value:
                return restored
        return value
    if origin in (list, tuple, set, frozenset) and isinstance(value, list):
        args = [a for a in get_args(annotation) if a is not Ellipsis]
        item_type = args[0] if args else Any
        return [_restore(v, item_type) for v in value]
    if origin is dict and isinstance(value, dict):
        args = get_args(annotation)
        value_type = args[1] if len(args) == 2 else Any
        return {k: _restore(v, value_type) for k, v in value.items()}
    if annotation is datetime:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return from_epoch_millis(value)
        return value
    if annotation is date:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return from_epoch_millis(value).date()
        return value
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        if isinstance(value, dict):
            return _restore_model(value, annotation)
    return value


def _restore_model(data: dict[str, Any], cls: type[BaseModel]) -> dict[str, Any]:
    restored = dict(data)
    for name, info in cls.model_fields.items():
        if name in restored:
            restored[name] = _restore(restored[name], info.annotation)
    return restored


class DocumentConverter:
    """
    Write pydantic entities as store documents and read them back.

    The entity's id field is always stored under ``id``. Reading drops the
    store's system properties before validation.
    """

    def write(self, entity: BaseModel) -> dict[str, Any]:
        info = EntityInformation.of(type(entity))
        try:
            data = to_document_value(entity.model_dump(mode="python"))
        except PydanticSerializationError as e:
            raise DocumentConversionError(str(e)) from e
        if info.id_field != "id":
            data["id"] = data.pop(info.id_field, None)
        if data.get("id") is not None and not isinstance(data["id"], str):
            data["id"] = str(data["id"])
        return data

    def read(self, document: dict[str, Any], cls: type[TModel]) -> TModel:
        if not isinstance(document, dict):
            raise DocumentConversionError("Document must be a dict")
        info = EntityInformation.of(cls)
        data = {k: v for k, v in document.items() if k not in INTERNAL_KEYS}
        if info.id_field != "id" and "id" in data:
            data[info.id_field] = data.pop("id")
        data = _restore_model(data, cls)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise DocumentConversionError(str(e)) from e
