from docdb_query.ports.search_result import SearchResult
from docdb_query.ports.store import CollectionSpec, FeedPage, IndexingMode, IndexingPolicy, StoreClient

__all__ = [
    "CollectionSpec",
    "FeedPage",
    "IndexingMode",
    "IndexingPolicy",
    "SearchResult",
    "StoreClient",
]
