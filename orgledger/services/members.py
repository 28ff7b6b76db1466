"""
Member management, scoped to the caller's position in the tree.
"""

import logging
from typing import Any, Dict, List

from orgledger.auth.identity import Identity
from orgledger.errors import Forbidden, NotFound, ValidationError
from orgledger.models import Member, ModelValidationError
from orgledger.models.member import EDITABLE_FIELDS
from orgledger.repositories import MemberRepository, NodeRepository, PaymentRepository
from orgledger.services.hierarchy import HierarchyService

logger = logging.getLogger(__name__)


class MemberService:

    def __init__(
        self,
        nodes: NodeRepository,
        members: MemberRepository,
        payments: PaymentRepository,
        hierarchy: HierarchyService
    ):
        self.nodes = nodes
        self.members = members
        self.payments = payments
        self.hierarchy = hierarchy

    def _check_branch_access(self, actor: Identity, branch_id: str) -> None:
        if actor.is_branch:
            if actor.node_id != str(branch_id):
                raise Forbidden("Access denied. Member does not belong to your branch")
        elif not self.hierarchy.has_access(actor.node_id, branch_id):
            raise Forbidden("Access denied")

    def _get_member(self, member_id: str) -> Member:
        member = self.members.get_by_id(member_id)
        if member is None:
            raise NotFound("Member not found")
        return member

    def _save(self, member: Member, create: bool = False) -> Member:
        try:
            return self.members.create(member) if create else self.members.save(member)
        except ModelValidationError as e:
            raise ValidationError("Validation error", e.errors) from e

    def create_member(self, actor: Identity, data: Dict[str, Any]) -> Member:
        """
        Register a member under a Branch. A Branch caller always registers into
        its own branch; higher levels must name a branch they can reach.
        """
        if not data.get('name'):
            raise ValidationError("Member name is required")

        branch_id = data.get('branch_id') or (actor.node_id if actor.is_branch else None)
        if not branch_id:
            raise ValidationError("Branch ID is required")
        branch = self.nodes.get_by_id(branch_id)
        if branch is None or not branch.is_branch:
            raise ValidationError("Validation error", ["Member must belong to a Branch node"])
        self._check_branch_access(actor, branch.entity_id)

        member = Member(branch_id=branch.entity_id,
                        **{k: v for k, v in data.items() if k in EDITABLE_FIELDS})
        member = self._save(member, create=True)
        logger.info("Created member %s (%s) in branch %s",
                    member.entity_id, member.member_code, branch.entity_id)
        return member

    def edit_member(self, actor: Identity, member_id: str, data: Dict[str, Any]) -> Member:
        member = self._get_member(member_id)
        self._check_branch_access(actor, member.branch_id)
        for key in EDITABLE_FIELDS:
            if key in data:
                setattr(member, key, data[key])
        member.normalize()
        return self._save(member)

    def delete_member(self, actor: Identity, member_id: str) -> Member:
        """Soft delete; the member's payments stay in the ledger."""
        member = self._get_member(member_id)
        self._check_branch_access(actor, member.branch_id)
        return self.members.delete(member)

    def _with_totals(self, members: List[Member]) -> List[Dict[str, Any]]:
        totals = self.payments.sum_by_member([m.entity_id for m in members])
        rows = []
        for member in members:
            row = member.as_api_dict()
            row['total_paid'] = totals.get(member.entity_id, 0)
            rows.append(row)
        return rows

    def list_branch_members(self, actor: Identity, branch_id: str) -> List[Dict[str, Any]]:
        self._check_branch_access(actor, branch_id)
        return self._with_totals(self.members.get_by_branch(branch_id))

    def list_my_members(self, actor: Identity) -> List[Dict[str, Any]]:
        if not actor.is_branch:
            raise Forbidden("Only Branch nodes can access members")
        return self._with_totals(self.members.get_by_branch(actor.node_id))

    def member_detail(self, actor: Identity, member_id: str) -> Dict[str, Any]:
        member = self._get_member(member_id)
        self._check_branch_access(actor, member.branch_id)
        branch = self.nodes.get_by_id(member.branch_id)
        payments = self.payments.get_by_member(member.entity_id)

        detail = member.as_api_dict()
        detail['branch'] = branch.summary() if branch else None
        detail['total_paid'] = sum(p.amount for p in payments)
        detail['payments'] = [p.as_api_dict() for p in payments]
        return detail
