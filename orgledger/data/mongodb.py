from typing import Any, Dict, List, Optional, Tuple, Union
from pymongo import MongoClient, ReturnDocument, errors
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo.client_session import ClientSession
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from orgledger.data.base import DbAdapter, UniqueConstraintError

COUNTERS_COLLECTION = 'counters'


class MongoDBAdapter(DbAdapter):
    """
    MongoDB adapter with robust defaults and safety patterns:
      - Retryable writes enabled
      - Majority write concern
      - Configurable timeouts and pool sizes
      - Causal consistency sessions
      - Unique index violations surfaced as UniqueConstraintError
    """

    def __init__(
        self,
        mongo_uri: str,
        mongo_database: str,
        **client_options: Any
    ):
        options = {
            'retryWrites': True,
            'w': 'majority',
            'serverSelectionTimeoutMS': 5000,
            'connectTimeoutMS': 5000,
            'maxPoolSize': 100,
            'tz_aware': True,
        }
        options.update(client_options)
        self.client: MongoClient = MongoClient(mongo_uri, **options)
        self.db_name: str = mongo_database
        self.db: Database = None
        self._session: Optional[ClientSession] = None

    def __enter__(self) -> 'MongoDBAdapter':
        """
        Context manager entry point for establishing a MongoDB connection.

        Verifies the connection with a ping, selects the database and starts a
        causal-consistency session. A failed ping raises ConnectionError.
        """
        try:
            self.client.admin.command('ping')
        except errors.PyMongoError as e:
            raise ConnectionError(f"MongoDB ping failed: {e}") from e

        self.db = self.client.get_database(self.db_name)
        self._session = self.client.start_session(causal_consistency=True)
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        """
        End the session. The MongoClient itself is long-lived and stays open.
        """
        if self._session:
            self._session.end_session()
            self._session = None

    def close(self) -> None:
        self.client.close()

    def _get_collection(self, name: str, write: bool = False) -> Collection:
        """
        Get a collection with a local read concern, plus a majority write
        concern when `write` is True.
        """
        rc = ReadConcern('local')
        if write:
            return self.db.get_collection(name, read_concern=rc, write_concern=WriteConcern('majority'))
        return self.db.get_collection(name, read_concern=rc)

    def get_one(
        self,
        table: str,
        conditions: Dict[str, Any],
        hint: Optional[str] = None,
        sort: Optional[List[Tuple[str, int]]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Retrieve a single document from `table` matching `conditions`.

        Raises:
            RuntimeError: If the query fails due to a PyMongoError.
        """
        try:
            coll = self._get_collection(table)
            kwargs: Dict[str, Any] = {}
            if hint is not None:
                kwargs['hint'] = hint
            if sort is not None:
                kwargs['sort'] = sort
            return coll.find_one(conditions, session=self._session, **kwargs)
        except errors.PyMongoError as e:
            raise RuntimeError(f"get_one failed: {e}") from e

    def get_many(
        self,
        table: str,
        conditions: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Retrieve the documents of `table` matching `conditions`.

        Args:
            table (str): The collection to read.
            conditions (Optional[Dict[str, Any]]): Filter document.
            hint (Optional[str]): Optional index hint.
            sort (Optional[List[Tuple[str, int]]]): Sort specification.
            limit (Optional[int]): Maximum number of documents; None or 0 means no limit.
            offset (Optional[int]): Number of documents to skip.

        Raises:
            RuntimeError: If the query fails due to a PyMongoError.
        """
        try:
            coll = self._get_collection(table)
            cursor = coll.find(conditions or {}, session=self._session,
                               **({'hint': hint} if hint else {}))
            if sort:
                cursor = cursor.sort(sort)
            if offset is not None and offset > 0:
                cursor = cursor.skip(offset)
            if limit is not None and limit > 0:
                cursor = cursor.limit(limit)
            return list(cursor)
        except errors.PyMongoError as e:
            raise RuntimeError(f"get_many failed: {e}") from e

    def get_count(
        self,
        table: str,
        conditions: Dict[str, Any],
        options: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Count the documents of `table` matching `conditions`.

        Raises:
            RuntimeError: If the query fails due to a PyMongoError.
        """
        try:
            coll = self._get_collection(table)
            kwargs: Dict[str, Any] = {}
            if options and options.get('hint') is not None:
                kwargs['hint'] = options['hint']
            return coll.count_documents(conditions, session=self._session, **kwargs)
        except errors.PyMongoError as e:
            raise RuntimeError(f"get_count failed: {e}") from e

    def save(
        self,
        table: str,
        data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Save (versioned) a document in the specified MongoDB collection.

        Instead of doing a simple upsert, this does a "versioned insert":
          1. Find the existing document with entity_id and latest=True. If found, set latest=False.
          2. Insert `data` as the new latest version and return it.

        If the insert violates a unique index the previous version is restored
        as latest and UniqueConstraintError is raised.

        Raises:
            RuntimeError: If any MongoDB operation fails.
            UniqueConstraintError: If the new version collides with a unique index.
        """
        if 'entity_id' not in data:
            raise RuntimeError("save failed: 'entity_id' is required in data")

        coll = self._get_collection(table, write=True)
        prev_latest = None
        try:
            prev_latest = coll.find_one(
                {"entity_id": data['entity_id'], "latest": True},
                session=self._session
            )
            if prev_latest:
                coll.update_one(
                    {"_id": prev_latest["_id"]},
                    {"$set": {"latest": False}},
                    session=self._session
                )

            new_doc = data.copy()
            new_doc.pop('_id', None)
            new_doc["latest"] = True

            insert_result = coll.insert_one(new_doc, session=self._session)
            return coll.find_one({"_id": insert_result.inserted_id}, session=self._session)

        except errors.DuplicateKeyError as e:
            if prev_latest:
                coll.update_one(
                    {"_id": prev_latest["_id"]},
                    {"$set": {"latest": True}},
                    session=self._session
                )
            raise UniqueConstraintError(table, (e.details or {}).get('keyValue', {})) from e
        except errors.PyMongoError as e:
            raise RuntimeError(f"save failed: {e}") from e

    def create_index(
        self,
        table: str,
        columns: List[Union[str, Tuple[str, int]]],
        index_name: str,
        unique: bool = False,
        partial_filter: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Create a MongoDB index on `table`.

        Args:
            table (str): The collection to index.
            columns (List[Union[str, Tuple[str, int]]]): Column names or (name, direction) tuples.
            index_name (str): The name of the index.
            unique (bool): Whether the index enforces uniqueness.
            partial_filter (Optional[Dict[str, Any]]): Partial filter expression.

        Returns:
            str: The name of the created index.

        Raises:
            RuntimeError: If the operation fails due to a PyMongoError.
        """
        try:
            options: Dict[str, Any] = {'name': index_name}
            if unique:
                options['unique'] = True
            if partial_filter:
                options['partialFilterExpression'] = partial_filter
            coll = self._get_collection(table, write=True)
            return coll.create_index(columns, **options)
        except errors.PyMongoError as e:
            raise RuntimeError(f"create_index failed: {e}") from e

    def aggregate(
        self,
        table: str,
        pipeline: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """
        Execute an aggregation pipeline and return raw results.

        Raises:
            RuntimeError: If the aggregation fails due to a PyMongoError.
        """
        try:
            coll = self._get_collection(table)
            cursor = coll.aggregate(pipeline, session=self._session)
            return list(cursor)
        except errors.PyMongoError as e:
            raise RuntimeError(f"aggregate failed: {e}") from e

    def increment_counter(self, name: str) -> int:
        """
        Atomically increment the sequence `name` in the counters collection,
        creating it on first use.

        Raises:
            RuntimeError: If the update fails due to a PyMongoError.
        """
        try:
            coll = self._get_collection(COUNTERS_COLLECTION, write=True)
            counter = coll.find_one_and_update(
                {'name': name},
                {'$inc': {'seq': 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
                session=self._session
            )
            return int(counter['seq'])
        except errors.PyMongoError as e:
            raise RuntimeError(f"increment_counter failed: {e}") from e
