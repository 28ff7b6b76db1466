from dataclasses import dataclass

from orgledger.models import NodeType


@dataclass(frozen=True)
class Identity:
    """The authenticated node behind a request."""

    node_id: str
    node_type: NodeType
    node_name: str

    @property
    def is_branch(self) -> bool:
        return self.node_type == NodeType.leaf()
