"""
Node lifecycle: creation with generated code and password, rename,
password reset and deletion.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from orgledger.auth.passwords import verify_password
from orgledger.auth.identity import Identity
from orgledger.data.base import UniqueConstraintError
from orgledger.errors import Forbidden, NotFound, ServerError, ValidationError
from orgledger.models import ModelValidationError, Node, NodeType, generate_node_code, generate_password
from orgledger.repositories import MemberRepository, NodeRepository
from orgledger.services.hierarchy import HierarchyService, can_create_child_type

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


class NodeService:

    def __init__(self, nodes: NodeRepository, members: MemberRepository, hierarchy: HierarchyService):
        self.nodes = nodes
        self.members = members
        self.hierarchy = hierarchy

    def _parse_type(self, node_type) -> NodeType:
        try:
            return node_type if isinstance(node_type, NodeType) else NodeType(node_type)
        except ValueError:
            raise ValidationError("Invalid node type")

    def _persist_with_unique_code(self, node: Node) -> Node:
        """
        Pick a code that is free, then insert. The existence check and the
        insert are not atomic; the unique index on `node_code` rejects a
        concurrent duplicate, which counts as another attempt.
        """
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            node.node_code = generate_node_code(node.name)
            if self.nodes.get_by_code(node.node_code) is not None:
                continue
            try:
                return self.nodes.create(node)
            except UniqueConstraintError:
                logger.warning("Node code %s taken on insert (attempt %d)", node.node_code, attempt)
            except ModelValidationError as e:
                raise ValidationError("Validation error", e.errors) from e
        raise ServerError("Failed to generate unique node code")

    def create_node(
        self,
        name: str,
        node_type,
        parent_id: Optional[str],
        actor: Optional[Identity] = None
    ) -> Tuple[Node, str]:
        """
        Create a node one level below `parent_id`.

        Returns:
            (node, raw_password): the persisted node and its cleartext password.

        Raises:
            ValidationError: missing name/type or a type that does not fit under the parent.
            NotFound: the parent does not exist.
            Forbidden: the actor may not manage the parent.
            ServerError: no free node code after MAX_CODE_ATTEMPTS tries.
        """
        if not name or not str(name).strip() or not node_type:
            raise ValidationError("Name and type are required")
        node_type = self._parse_type(node_type)

        parent = self.nodes.get_by_id(parent_id)
        if parent is None:
            raise NotFound("Parent node not found")

        if not can_create_child_type(parent.type, node_type):
            raise ValidationError(f"Cannot create {node_type.value} under {parent.type.value}")

        if actor is not None and not self.hierarchy.has_access(actor.node_id, parent.entity_id):
            raise Forbidden("Access Denied")

        raw_password = generate_password()
        node = Node(
            name=str(name).strip(),
            type=node_type,
            parent_id=parent.entity_id,
            password=raw_password,
            plain_password=raw_password,
        )
        node = self._persist_with_unique_code(node)
        logger.info("Created %s node %s (%s) under %s",
                    node_type.value, node.entity_id, node.node_code, parent.entity_id)
        return node, raw_password

    def create_root(self, name: str) -> Tuple[Node, str]:
        """Create the single top-level node."""
        if not name or not str(name).strip():
            raise ValidationError("Name and type are required")
        if self.nodes.get_root() is not None:
            raise ValidationError(f"A {NodeType.root().value} node already exists")

        raw_password = generate_password()
        node = Node(
            name=str(name).strip(),
            type=NodeType.root(),
            parent_id=None,
            password=raw_password,
            plain_password=raw_password,
        )
        return self._persist_with_unique_code(node), raw_password

    def get_node(self, node_id: str) -> Node:
        node = self.nodes.get_by_id(node_id)
        if node is None:
            raise NotFound("Node not found")
        return node

    def rename_node(self, node_id: str, name: str) -> Node:
        node = self.get_node(node_id)
        if not name or not str(name).strip():
            raise ValidationError("Node name is required")
        node.name = str(name).strip()
        return self.nodes.save(node)

    def reset_password(self, node_id: str) -> Tuple[Node, str]:
        node = self.get_node(node_id)
        raw_password = generate_password()
        node.password = raw_password
        node.plain_password = raw_password
        return self.nodes.save(node), raw_password

    def delete_node(self, node_id: str, password: str) -> Node:
        """
        Soft delete after confirming the node's own password. Children and
        members of the node are left untouched.
        """
        node = self.get_node(node_id)
        if not verify_password(password, node.password):
            raise Forbidden("Incorrect Password")
        return self.nodes.delete(node)

    def get_children(self, node_id: str) -> List[Node]:
        return self.nodes.get_children(node_id)

    def get_node_details(self, node_code: str, viewer: Identity) -> Dict[str, Any]:
        """Node by code, with its children, breadcrumb from the viewer and member counts."""
        node = self.nodes.get_by_code(node_code)
        if node is None:
            raise NotFound("Node not found")
        if not self.hierarchy.has_access(viewer.node_id, node.entity_id):
            raise Forbidden("Access Denied")

        path = self.hierarchy.breadcrumb(node.entity_id, viewer.node_id)
        closure = self.hierarchy.descendant_ids(node.entity_id)
        details: Dict[str, Any] = {
            'node': node,
            'children': self.nodes.get_children(node.entity_id),
            'path': path,
            'total_members': self.members.count_by_branches(closure),
        }
        if node.is_branch:
            details['members'] = self.members.get_by_branch(node.entity_id)
        return details
