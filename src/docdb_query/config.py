"""Facade configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DocumentDbConfig:
    """
    Settings shared by :class:`DocumentOperations` and its async adapter.

    Attributes:
        database: Logical database name, used in log lines and by stores
            that host several databases.
        default_page_size: Page size for streaming and for ``find_all_page``
            when the caller gives none.
        enable_cross_partition_query: Allow queries without a partition key
            to fan out over every partition of a partitioned collection.
        max_workers: Thread pool size of the async adapter.
    """

    database: str = "default"
    default_page_size: int = 100
    enable_cross_partition_query: bool = True
    max_workers: int = 4

    def __post_init__(self) -> None:
        if self.default_page_size <= 0:
            raise ValueError("default_page_size must be greater than zero")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be greater than zero")
