"""
Node model
"""

import re
import secrets
import string
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .versioned_model import VersionedModel

BASE36_ALPHABET = string.digits + string.ascii_lowercase
NODE_CODE_SUFFIX_LENGTH = 6
PASSWORD_LENGTH = 10


class NodeType(str, Enum):
    """Organizational levels, declared root-to-leaf."""

    BHARAT = 'Bharat'
    KSHETRA = 'Kshetra'
    PRANT = 'Prant'
    VIBHAG = 'Vibhag'
    JILA = 'Jila'
    NAGAR = 'Nagar'
    KHAND = 'Khand'
    BRANCH = 'Branch'

    @property
    def rank(self) -> int:
        return list(NodeType).index(self)

    @classmethod
    def root(cls) -> 'NodeType':
        return list(cls)[0]

    @classmethod
    def leaf(cls) -> 'NodeType':
        return list(cls)[-1]


def _random_base36(length: int) -> str:
    return ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def generate_node_code(name: str) -> str:
    """Sanitized name plus a random upper-case suffix, e.g. `NORTHZONE-4K2J9Q`."""
    sanitized = re.sub(r'\s+', '', name).upper()
    return f"{sanitized}-{_random_base36(NODE_CODE_SUFFIX_LENGTH).upper()}"


def generate_password() -> str:
    return _random_base36(PASSWORD_LENGTH)


@dataclass
class Node(VersionedModel):
    """An organizational node. Children are found by querying `parent_id`."""

    name: Optional[str] = None
    type: Optional[NodeType] = None
    parent_id: Optional[str] = None
    node_code: Optional[str] = None
    # bcrypt hash once persisted
    password: Optional[str] = None
    # cleartext copy kept for administrative recovery
    plain_password: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.type == NodeType.root()

    @property
    def is_branch(self) -> bool:
        return self.type == NodeType.leaf()

    def validate_name(self):
        if not self.name or not self.name.strip():
            return "Node name is required"

    def validate_type(self):
        if not isinstance(self.type, NodeType):
            return "Invalid node type"

    def validate_parent_id(self):
        if self.type == NodeType.root() and self.parent_id is not None:
            return "Parent validation failed: root node cannot have a parent"
        if isinstance(self.type, NodeType) and self.type != NodeType.root() and not self.parent_id:
            return "Parent validation failed: node requires a parent"

    def validate_node_code(self):
        if not self.node_code:
            return "Node code is required"

    def validate_password(self):
        if not self.password or len(self.password) < 6:
            return "Password must be at least 6 characters"

    def summary(self) -> dict:
        return {
            'id': self.entity_id,
            'name': self.name,
            'type': self.type.value if self.type else None,
            'code': self.node_code,
        }
