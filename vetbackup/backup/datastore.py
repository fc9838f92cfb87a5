"""Datastore collaborator: bulk read, insert and delete per named collection."""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from vetbackup.config.logging_config import get_logger
from vetbackup.core.error_handling import DatastoreError

logger = get_logger(__name__)

Document = Dict[str, Any]


class Datastore(Protocol):
    """What the snapshot codec needs from the storage engine.

    Methods are blocking and are called from the gateway's worker pool.
    ``session`` is whatever ``transaction()`` yielded, or None.
    """

    def find_all(self, collection: str) -> List[Document]:
        ...

    def count(self, collection: str) -> int:
        ...

    def insert_many(self, collection: str, documents: Sequence[Document], session: Any = None) -> int:
        ...

    def delete_all(self, collection: str, session: Any = None) -> int:
        ...

    def transaction(self) -> Any:
        """Context manager yielding a session, or None when unsupported."""
        ...


class MongoDatastore:
    """``Datastore`` backed by pymongo."""

    def __init__(
        self,
        uri: str,
        database: Optional[str] = None,
        use_transactions: bool = False,
        client: Optional[MongoClient] = None,
    ):
        """Initialize the MongoDB datastore.

        Args:
            uri: MongoDB connection string
            database: Database name; defaults to the one in ``uri``
            use_transactions: Wrap restores in a multi-document transaction
                (requires a replica set)
            client: Pre-built client, mainly for tests
        """
        self._client = client or MongoClient(uri)
        if database:
            self._db = self._client[database]
        else:
            self._db = self._client.get_default_database(default="vet_clinic")
        self.use_transactions = use_transactions

    def find_all(self, collection: str) -> List[Document]:
        try:
            return list(self._db[collection].find({}))
        except PyMongoError as e:
            raise DatastoreError(f"Failed to read {collection}: {e}", operation="find", collection=collection) from e

    def count(self, collection: str) -> int:
        try:
            return self._db[collection].count_documents({})
        except PyMongoError as e:
            raise DatastoreError(f"Failed to count {collection}: {e}", operation="count", collection=collection) from e

    def insert_many(self, collection: str, documents: Sequence[Document], session: Any = None) -> int:
        if not documents:
            # pymongo rejects empty batches
            return 0
        try:
            result = self._db[collection].insert_many([dict(doc) for doc in documents], session=session)
        except PyMongoError as e:
            raise DatastoreError(
                f"Failed to insert into {collection}: {e}", operation="insert_many", collection=collection
            ) from e
        return len(result.inserted_ids)

    def delete_all(self, collection: str, session: Any = None) -> int:
        try:
            return self._db[collection].delete_many({}, session=session).deleted_count
        except PyMongoError as e:
            raise DatastoreError(
                f"Failed to clear {collection}: {e}", operation="delete_many", collection=collection
            ) from e

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        if not self.use_transactions:
            yield None
            return
        with self._client.start_session() as session:
            with session.start_transaction():
                yield session

    def close(self) -> None:
        self._client.close()
