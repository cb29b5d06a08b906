from .converter import (
    DocumentConverter,
    date_to_epoch_millis,
    from_epoch_millis,
    to_document_value,
    to_epoch_millis,
)
from .metadata import (
    EntityInformation,
    IndexingMode,
    IndexingPolicy,
    document,
)

__all__ = [
    "DocumentConverter",
    "EntityInformation",
    "IndexingMode",
    "IndexingPolicy",
    "date_to_epoch_millis",
    "document",
    "from_epoch_millis",
    "to_document_value",
    "to_epoch_millis",
]
