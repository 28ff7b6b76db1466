"""
Models for orgledger
"""

from .versioned_model import VersionedModel, ModelValidationError
from .node import Node, NodeType, generate_node_code, generate_password
from .member import Member
from .payment import Payment, PaymentMode
