"""
Tree-shape rules and traversal over the node hierarchy.
"""

import logging
from collections import deque
from typing import Dict, List, Optional, Union

from orgledger.errors import InvalidHierarchy, NotFound
from orgledger.models import Node, NodeType
from orgledger.repositories import NodeRepository

logger = logging.getLogger(__name__)


def _as_node_type(node_type: Union[NodeType, str]) -> NodeType:
    return node_type if isinstance(node_type, NodeType) else NodeType(node_type)


def type_order(node_type: Union[NodeType, str]) -> int:
    """Rank of `node_type`, 0 for the root level. Raises ValueError for unknown types."""
    return _as_node_type(node_type).rank


def get_node_type_order() -> Dict[str, int]:
    return {node_type.value: node_type.rank for node_type in NodeType}


def can_create_child_type(parent_type: Union[NodeType, str], child_type: Union[NodeType, str]) -> bool:
    """A child must sit exactly one level below its parent."""
    try:
        return type_order(child_type) == type_order(parent_type) + 1
    except ValueError:
        return False


class HierarchyService:
    """
    Descendant closure, access checks and breadcrumbs.

    The closure walk assumes the stored tree is acyclic; it does not detect
    cycles.
    """

    def __init__(self, nodes: NodeRepository, strict_access: bool = False):
        self.nodes = nodes
        self.strict_access = strict_access

    def descendant_ids(self, node_id: str) -> List[str]:
        """
        All node ids reachable from `node_id` through parent->child links,
        `node_id` first. Breadth-first with an explicit queue, one lookup
        per tree level.
        """
        closure: List[str] = []
        queue = deque([node_id])
        while queue:
            frontier = list(queue)
            queue.clear()
            closure.extend(frontier)
            queue.extend(self.nodes.get_child_ids(frontier))
        return closure

    def is_descendant(self, ancestor_id: str, node_id: str) -> bool:
        return node_id in set(self.descendant_ids(ancestor_id))

    def has_access(self, viewer_id: str, target_id: str, strict: Optional[bool] = None) -> bool:
        """
        A viewer may see its own node and any node at a deeper level.

        By default only the levels are compared, so an unrelated node deeper
        in another subtree passes. With `strict` the target must also be a
        real descendant of the viewer.
        """
        if not viewer_id or not target_id:
            return False
        if str(viewer_id) == str(target_id):
            return True

        viewer = self.nodes.get_by_id(viewer_id)
        target = self.nodes.get_by_id(target_id)
        if viewer is None or target is None:
            return False

        if type_order(viewer.type) >= type_order(target.type):
            return False
        strict = self.strict_access if strict is None else strict
        if strict:
            return self.is_descendant(viewer_id, target_id)
        return True

    def breadcrumb(self, target_id: str, viewer_id: str) -> List[dict]:
        """
        Path from the viewer down to the target, viewer first.

        Raises:
            NotFound: the target node does not exist.
            InvalidHierarchy: the walk reached the root without meeting the viewer.
        """
        current: Optional[Node] = self.nodes.get_by_id(target_id)
        if current is None:
            raise NotFound("Node not found")

        path = []
        while current is not None:
            path.append(current.summary())
            if current.entity_id == str(viewer_id):
                break
            if not current.parent_id:
                logger.info("Breadcrumb for %s never reached viewer %s", target_id, viewer_id)
                raise InvalidHierarchy()
            current = self.nodes.get_by_id(current.parent_id)
            if current is None:
                raise InvalidHierarchy()

        path.reverse()
        return path
