from .base_repository import BaseRepository
from .node_repository import NodeRepository
from .member_repository import MemberRepository
from .payment_repository import PaymentRepository
