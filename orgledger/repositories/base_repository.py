"""
base repository for orgledger
"""
import logging
from typing import Any, Dict, List, Optional, Tuple, Type

from orgledger.data.base import DbAdapter
from orgledger.models.versioned_model import VersionedModel


class BaseRepository:
    """
    Generic repository over a DbAdapter for one VersionedModel collection.

    Reads only see the latest, active version of each entity unless the
    caller's conditions say otherwise.
    """

    collection_name: str = None
    # (columns, index_name, unique)
    indexes: List[Tuple[list, str, bool]] = []

    def __init__(
        self,
        adapter: DbAdapter,
        model: Type[VersionedModel],
        user_id: Optional[str] = None
    ):
        self.adapter = adapter
        self.model = model
        self.table_name = self.collection_name or f"{model.__name__.lower()}s"
        self.user_id = user_id
        self.logger = logging.getLogger(
            f"{__name__}.{self.__class__.__name__}")
        if not logging.getLogger().hasHandlers():
            logging.basicConfig(
                level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    def _execute_within_context(
        self,
        func,
        *args,
        **kwargs
    ):
        """Utility method to execute adapter methods within the context manager."""
        with self.adapter:
            return func(*args, **kwargs)

    @staticmethod
    def _versioned_conditions(conditions: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        db_conditions = dict(conditions) if conditions else {}
        db_conditions.setdefault("latest", True)
        db_conditions.setdefault("active", True)
        return db_conditions

    def _process_data_before_save(
        self,
        instance: VersionedModel
    ) -> Dict[str, Any]:
        """Convert a VersionedModel instance to a data dictionary for the adapter."""
        instance.prepare_for_save(changed_by_id=self.user_id)
        data = instance.as_dict(convert_datetime_to_iso_string=False, convert_uuids=True)
        data.pop("_id", None)
        return data

    def ensure_indexes(self) -> List[str]:
        """Create the collection's indexes. Unique indexes only apply to latest versions."""
        created = []
        for columns, index_name, unique in self.indexes:
            created.append(self._execute_within_context(
                self.adapter.create_index,
                self.table_name,
                columns,
                index_name,
                unique=unique,
                partial_filter={"latest": True} if unique else None
            ))
        return created

    def get_one(
        self,
        conditions: Dict[str, Any]
    ) -> Optional[VersionedModel]:
        """
        Fetches a single record matching the given conditions.

        :param conditions: filter conditions
        :return: a VersionedModel instance if found, None otherwise
        """
        data = self._execute_within_context(
            self.adapter.get_one,
            self.table_name,
            self._versioned_conditions(conditions)
        )
        if not data:
            return None
        return self.model.from_dict(data)

    def get_by_id(self, entity_id: str) -> Optional[VersionedModel]:
        if not entity_id:
            return None
        return self.get_one({"entity_id": entity_id})

    def get_many(
        self,
        conditions: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None
    ) -> List[VersionedModel]:
        """
        Fetches multiple records matching the given conditions.

        :param conditions: filter conditions
        :param sort: sort order
        :param limit: maximum number of records to return, None for all
        :param offset: number of records to skip before returning results
        :return: list of VersionedModel instances
        """
        records = self._execute_within_context(
            self.adapter.get_many,
            self.table_name,
            self._versioned_conditions(conditions),
            sort=sort,
            limit=limit,
            offset=offset
        )
        return [self.model.from_dict(record) for record in records or []]

    def get_count(self, conditions: Optional[Dict[str, Any]] = None) -> int:
        return self._execute_within_context(
            self.adapter.get_count,
            self.table_name,
            self._versioned_conditions(conditions)
        )

    def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Execute an aggregation pipeline and return raw results."""
        return self._execute_within_context(
            self.adapter.aggregate, self.table_name, pipeline)

    def save(
        self,
        instance: VersionedModel
    ) -> VersionedModel:
        """
        Saves a new version of a VersionedModel instance.

        :param instance: The VersionedModel instance to save.
        :return: The saved VersionedModel instance.
        """
        payload = self._process_data_before_save(instance)
        self._execute_within_context(
            self.adapter.save, self.table_name, payload)
        return instance

    def create(
        self,
        instance: VersionedModel
    ) -> VersionedModel:
        """
        Same as :meth:`save`, but forces the instance to be active.
        """
        self.logger.info(
            f"Creating entity_id={instance.entity_id} in {self.table_name}")
        instance.active = True
        return self.save(instance)

    def delete(
        self,
        instance: VersionedModel
    ) -> VersionedModel:
        """
        Logically deletes an instance by saving a new version with active=False.
        Nothing that references the instance is touched.
        """
        self.logger.info(
            f"Deleting entity_id={instance.entity_id} from {self.table_name}")
        instance.active = False
        return self.save(instance)
