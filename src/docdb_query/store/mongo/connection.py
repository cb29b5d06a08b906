"""MongoConnectionManager: owns the pymongo client behind a MongoStoreClient."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ...exceptions import StoreUnavailableError

if TYPE_CHECKING:
    from pymongo.database import Database

    from ...config import DocumentDbConfig


class MongoConnectionManager:
    """
    Lazily created pymongo client bound to one database.

    Usage::

        with MongoConnectionManager.for_config("mongodb://db:27017", config) as conn:
            ops = DocumentOperations(MongoStoreClient(connection=conn), config=config)

    ``client_factory`` builds the client from the URL and keyword options;
    it defaults to :class:`pymongo.MongoClient`.
    """

    def __init__(
        self,
        url: str = "mongodb://localhost:27017",
        *,
        database: str = "docdb",
        server_selection_timeout_ms: int = 5000,
        connect_timeout_ms: int = 10000,
        client_factory: Callable[..., MongoClient[Any]] = MongoClient,
        **options: Any,
    ) -> None:
        self._url = url
        self._database_name = database
        self._options = {
            "serverSelectionTimeoutMS": server_selection_timeout_ms,
            "connectTimeoutMS": connect_timeout_ms,
            **options,
        }
        self._client_factory = client_factory
        self._client: MongoClient[Any] | None = None

    @classmethod
    def for_config(
        cls, url: str, config: DocumentDbConfig, **kwargs: Any
    ) -> MongoConnectionManager:
        """Connection to the database named by ``config``."""
        return cls(url, database=config.database, **kwargs)

    @property
    def database_name(self) -> str:
        return self._database_name

    @property
    def connected(self) -> bool:
        return self._client is not None

    def connect(self) -> MongoClient[Any]:
        """Create the client on first use and return it."""
        if self._client is None:
            try:
                self._client = self._client_factory(self._url, **self._options)
            except PyMongoError as e:
                raise StoreUnavailableError(f"Cannot connect to {self._url}: {e}") from e
        return self._client

    def database(self) -> Database[Any]:
        return self.connect()[self._database_name]

    def ping(self) -> None:
        """Round-trip to the server. Raises ``StoreUnavailableError`` if unreachable."""
        try:
            self.connect().admin.command("ping")
        except PyMongoError as e:
            raise StoreUnavailableError(str(e)) from e

    def health_check(self) -> bool:
        """``True`` when connected and the server answers a ping."""
        if self._client is None:
            return False
        try:
            self.ping()
        except StoreUnavailableError:
            return False
        return True

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> MongoConnectionManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
