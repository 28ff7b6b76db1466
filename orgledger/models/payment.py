"""
Payment model
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .versioned_model import VersionedModel, default_datetime


class PaymentMode(str, Enum):
    CASH = 'cash'
    UPI = 'upi'
    CHEQUE = 'cheque'


@dataclass
class Payment(VersionedModel):
    """A single contribution by a member. Payments are never edited once recorded."""

    member_id: Optional[str] = None
    amount: Optional[float] = None
    mode_of_payment: PaymentMode = PaymentMode.CASH
    date: datetime = field(default_factory=default_datetime)
    description: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.description, str):
            self.description = self.description.strip()

    def validate_member_id(self):
        if not self.member_id:
            return "Member ID is required"

    def validate_amount(self):
        if self.amount is None:
            return "Payment amount is required"
        if isinstance(self.amount, bool):
            return "Payment amount must be a number"
        try:
            amount = float(self.amount)
        except (TypeError, ValueError):
            return "Payment amount must be a number"
        if amount <= 0:
            return "Amount must be greater than 0"
        self.amount = amount

    def validate_mode_of_payment(self):
        if isinstance(self.mode_of_payment, PaymentMode):
            return None
        try:
            self.mode_of_payment = PaymentMode(self.mode_of_payment)
        except ValueError:
            return "Invalid payment mode"

    def validate_date(self):
        if not isinstance(self.date, datetime):
            return "Payment date must be a valid date"
