"""
Append-only payment ledger.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Optional, Union
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

from orgledger.auth.identity import Identity
from orgledger.errors import Forbidden, NotFound, ValidationError
from orgledger.models import Member, ModelValidationError, Payment, PaymentMode
from orgledger.repositories import MemberRepository, PaymentRepository
from orgledger.services.hierarchy import HierarchyService

logger = logging.getLogger(__name__)


class PaymentService:

    def __init__(
        self,
        members: MemberRepository,
        payments: PaymentRepository,
        hierarchy: HierarchyService,
        tz_name: str = 'UTC'
    ):
        self.members = members
        self.payments = payments
        self.hierarchy = hierarchy
        self.tz = ZoneInfo(tz_name)

    def _parse_date(self, value: Union[str, date, datetime, None]) -> Optional[datetime]:
        """Parse a payment date; values without an offset are read in the reporting timezone."""
        if value is None or value == '':
            return None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime(value.year, value.month, value.day)
        else:
            try:
                parsed = isoparse(str(value))
            except (ValueError, TypeError, OverflowError):
                raise ValidationError("Validation error", ["Payment date must be a valid date"])
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=self.tz)
        return parsed

    def _member_in_scope(self, actor: Identity, member_id: str) -> Member:
        member = self.members.get_by_id(member_id)
        if member is None:
            raise NotFound("Member not found")
        if actor.is_branch and member.branch_id != actor.node_id:
            raise Forbidden("Access denied. Member does not belong to your branch")
        if not actor.is_branch and not self.hierarchy.has_access(actor.node_id, member.branch_id):
            raise Forbidden("Access denied")
        return member

    def create_payment(
        self,
        actor: Identity,
        member_id: str,
        amount,
        mode_of_payment: Optional[str] = None,
        payment_date=None,
        description: Optional[str] = None
    ) -> Payment:
        """
        Record a payment. Payments cannot be edited or removed afterwards.

        Raises:
            ValidationError: missing member/amount, non-positive amount, unknown mode, bad date.
            NotFound: the member does not exist.
            Forbidden: a Branch caller recording for another branch's member.
        """
        if not member_id or amount in (None, ''):
            raise ValidationError("Member ID and amount are required")

        member = self._member_in_scope(actor, member_id)

        payment = Payment(
            member_id=member.entity_id,
            amount=amount,
            mode_of_payment=mode_of_payment or PaymentMode.CASH,
            description=description,
        )
        paid_on = self._parse_date(payment_date)
        if paid_on is not None:
            payment.date = paid_on

        try:
            payment = self.payments.create(payment)
        except ModelValidationError as e:
            raise ValidationError("Validation error", e.errors) from e
        logger.info("Recorded payment %s of %s for member %s",
                    payment.entity_id, payment.amount, member.entity_id)
        return payment

    def member_payments(self, actor: Identity, member_id: str) -> Dict[str, Any]:
        member = self._member_in_scope(actor, member_id)
        payments = self.payments.get_by_member(member.entity_id)
        return {
            'payments': [p.as_api_dict() for p in payments],
            'total': sum(p.amount for p in payments),
            'member': {
                'id': member.entity_id,
                'name': member.name,
                'email': member.email,
                'phone': member.phone,
            },
        }

    def my_branch_payments(self, actor: Identity) -> Dict[str, Any]:
        if not actor.is_branch:
            raise Forbidden("Only Branch nodes can access payments")
        members = {m.entity_id: m for m in self.members.get_by_branch(actor.node_id)}
        payments = self.payments.get_by_members(members.keys()) if members else []

        rows = []
        for payment in payments:
            row = payment.as_api_dict()
            member = members[payment.member_id]
            row['member'] = {'id': member.entity_id, 'name': member.name,
                             'email': member.email, 'phone': member.phone}
            rows.append(row)
        return {
            'payments': rows,
            'total': sum(p.amount for p in payments),
            'branchName': actor.node_name,
        }

    def payment_detail(self, actor: Identity, payment_id: str) -> Dict[str, Any]:
        payment = self.payments.get_by_id(payment_id)
        if payment is None:
            raise NotFound("Payment not found")
        member = self._member_in_scope(actor, payment.member_id)
        detail = payment.as_api_dict()
        detail['member'] = {'id': member.entity_id, 'name': member.name, 'email': member.email,
                            'phone': member.phone, 'branch_id': member.branch_id}
        return detail
