from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Union


class UniqueConstraintError(Exception):
    """Raised by adapters when a write violates a unique index."""

    def __init__(self, table: str, keys: Dict[str, Any]):
        self.table = table
        self.keys = keys
        super().__init__(f"Duplicate key in {table}: {keys}")


class DbAdapter(ABC):
    """Abstract base class for database adapters."""

    @abstractmethod
    def __enter__(self) -> 'DbAdapter':
        """Context manager entry point for preparing DB connection."""
        pass

    @abstractmethod
    def __exit__(self, exc_type, exc_value, traceback):
        """Context manager exit point for closing DB connection."""
        pass

    @abstractmethod
    def get_one(self, table: str, conditions: Dict[str, Any], hint: Optional[str] = None,
                sort: Optional[List[Tuple[str, int]]] = None) -> Optional[Dict[str, Any]]:
        """Fetches a single record from the specified table based on given conditions."""
        pass

    @abstractmethod
    def get_many(self, table: str, conditions: Optional[Dict[str, Any]] = None, hint: Optional[str] = None,
                 sort: Optional[List[Tuple[str, int]]] = None, limit: Optional[int] = None,
                 offset: Optional[int] = None) -> List[Dict[str, Any]]:
        """Fetches multiple records from the specified table based on given conditions."""
        pass

    @abstractmethod
    def get_count(self, table: str, conditions: Dict[str, Any], options: Optional[Dict[str, Any]] = None) -> int:
        """Counts records in the specified table matching the given conditions."""
        pass

    @abstractmethod
    def save(self, table: str, data: Dict[str, Any]) -> Union[Dict[str, Any], None]:
        """Inserts a new version of a record and demotes the previous latest version."""
        pass

    @abstractmethod
    def create_index(self, table: str, columns: List[Union[str, Tuple[str, int]]], index_name: str,
                     unique: bool = False, partial_filter: Optional[Dict[str, Any]] = None) -> str:
        """Creates an index; unique indexes are enforced on every later write."""
        pass

    @abstractmethod
    def aggregate(self, table: str, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Runs an aggregation pipeline and returns the raw result documents."""
        pass

    @abstractmethod
    def increment_counter(self, name: str) -> int:
        """Atomically increments the named sequence and returns its new value."""
        pass
