from typing import Iterable, List, Optional

from orgledger.models import Member
from orgledger.repositories.base_repository import BaseRepository

MEMBER_CODE_COUNTER = 'member_code'
MEMBER_CODE_PREFIX = 'RSS'


class MemberRepository(BaseRepository):
    collection_name = 'members'
    indexes = [
        (['member_code'], 'member_code_unique', True),
        (['branch_id'], 'branch_id', False),
        (['name'], 'name', False),
        (['email'], 'email', False),
    ]

    def __init__(self, adapter, user_id: Optional[str] = None):
        super().__init__(adapter, Member, user_id=user_id)

    def next_member_code(self) -> str:
        """Next sequential member code, e.g. `RSS-00000042`."""
        seq = self._execute_within_context(
            self.adapter.increment_counter, MEMBER_CODE_COUNTER)
        return f"{MEMBER_CODE_PREFIX}-{seq:08d}"

    def create(self, instance: Member) -> Member:
        if not instance.member_code:
            instance.member_code = self.next_member_code()
        return super().create(instance)

    def get_by_branch(self, branch_id: str) -> List[Member]:
        return self.get_many({"branch_id": branch_id}, sort=[("name", 1)])

    def get_ids_by_branches(self, branch_ids: Iterable[str]) -> List[str]:
        branch_ids = list(branch_ids)
        if not branch_ids:
            return []
        records = self._execute_within_context(
            self.adapter.get_many,
            self.table_name,
            self._versioned_conditions({"branch_id": {"$in": branch_ids}})
        )
        return [record["entity_id"] for record in records]

    def count_by_branches(self, branch_ids: Iterable[str]) -> int:
        branch_ids = list(branch_ids)
        if not branch_ids:
            return 0
        return self.get_count({"branch_id": {"$in": branch_ids}})
