from typing import Any, Dict, Iterable, List, Optional

from orgledger.auth.passwords import hash_password, is_password_hash
from orgledger.models import Node, NodeType
from orgledger.repositories.base_repository import BaseRepository


class NodeRepository(BaseRepository):
    collection_name = 'nodes'
    indexes = [
        (['node_code'], 'node_code_unique', True),
        (['parent_id'], 'parent_id', False),
        (['type'], 'type', False),
    ]

    def __init__(self, adapter, user_id: Optional[str] = None, password_rounds: int = 12):
        super().__init__(adapter, Node, user_id=user_id)
        self.password_rounds = password_rounds

    def _process_data_before_save(self, instance: Node) -> Dict[str, Any]:
        # Only a changed (cleartext) password gets hashed; stored hashes pass through.
        if instance.password and not is_password_hash(instance.password):
            instance.password = hash_password(instance.password, rounds=self.password_rounds)
        return super()._process_data_before_save(instance)

    def get_by_code(self, node_code: str) -> Optional[Node]:
        if not node_code:
            return None
        return self.get_one({"node_code": node_code})

    def get_root(self) -> Optional[Node]:
        return self.get_one({"type": NodeType.root().value})

    def get_children(self, parent_id: str) -> List[Node]:
        return self.get_many({"parent_id": parent_id}, sort=[("name", 1)])

    def get_child_ids(self, parent_ids: Iterable[str]) -> List[str]:
        """Ids of the direct children of every node in `parent_ids`, in one lookup."""
        parent_ids = list(parent_ids)
        if not parent_ids:
            return []
        records = self._execute_within_context(
            self.adapter.get_many,
            self.table_name,
            self._versioned_conditions({"parent_id": {"$in": parent_ids}}),
            sort=[("name", 1)]
        )
        return [record["entity_id"] for record in records]
