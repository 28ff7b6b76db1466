from .hierarchy import HierarchyService, can_create_child_type, get_node_type_order, type_order
from .nodes import NodeService
from .members import MemberService
from .payments import PaymentService
from .reports import CollectionReport, CollectionReporter, ChildPerformance
