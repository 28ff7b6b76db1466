"""data module"""

from .base import DbAdapter, UniqueConstraintError
from .memory import MemoryAdapter
from .mongodb import MongoDBAdapter
