"""
Member model
"""

import re
from dataclasses import dataclass
from typing import Optional

from .versioned_model import VersionedModel

EMAIL_PATTERN = re.compile(r'^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$')
PHONE_PATTERN = re.compile(r'^\+?[\d\s\-()]+$')

MIN_AGE = 1
MAX_AGE = 120

TRAINING_LEVELS = (
    'प्रारंभिक',
    'प्राथमिक',
    'संघ शिक्षा वर्ग-१',
    'संघ शिक्षा वर्ग-२',
    '',
)

# Fields a member can be edited through after creation
EDITABLE_FIELDS = (
    'name', 'email', 'phone', 'address', 'age', 'occupation',
    'other_occupation', 'birth_year', 'sangh_years', 'role', 'training',
    'uniform', 'education_level', 'college',
)


@dataclass
class Member(VersionedModel):
    """An individual attached to exactly one Branch node."""

    branch_id: Optional[str] = None
    member_code: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    age: Optional[int] = None
    birth_year: Optional[str] = None
    sangh_years: Optional[int] = None
    role: Optional[str] = None
    training: Optional[str] = None
    uniform: Optional[bool] = None
    occupation: Optional[str] = None
    other_occupation: Optional[str] = None
    education_level: Optional[str] = None
    college: Optional[str] = None

    def __post_init__(self):
        self.normalize()

    def normalize(self):
        """Trim free-text fields and lower-case the email."""
        for name in ('name', 'phone', 'address', 'occupation', 'education_level', 'college'):
            value = getattr(self, name)
            if isinstance(value, str):
                setattr(self, name, value.strip())
        if isinstance(self.email, str):
            self.email = self.email.strip().lower()

    def validate_branch_id(self):
        if not self.branch_id:
            return "Branch ID is required"

    def validate_name(self):
        if not self.name:
            return "Member name is required"

    def validate_email(self):
        if self.email and not EMAIL_PATTERN.match(self.email):
            return "Please enter a valid email address"

    def validate_phone(self):
        if self.phone and not PHONE_PATTERN.match(self.phone):
            return "Please enter a valid phone number"

    def validate_age(self):
        if self.age is None:
            return None
        try:
            age = int(self.age)
        except (TypeError, ValueError):
            return "Age must be a number"
        if age < MIN_AGE:
            return f"Age must be at least {MIN_AGE}"
        if age > MAX_AGE:
            return f"Age must be less than {MAX_AGE}"
        self.age = age

    def validate_training(self):
        if self.training is not None and self.training not in TRAINING_LEVELS:
            return "Invalid training level"
