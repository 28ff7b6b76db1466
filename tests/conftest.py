"""
Shared fixtures: an in-memory application and a full root-to-Branch chain.
"""
from datetime import datetime, timezone

import pytest

from orgledger.app import Application
from orgledger.auth.identity import Identity
from orgledger.models import NodeType

FIXED_NOW = datetime(2024, 6, 15, 10, 0, tzinfo=timezone.utc)
TEST_SECRET = "test_secret_key_123"


@pytest.fixture
def app():
    return Application.in_memory(
        token_secret=TEST_SECRET,
        token_expiration=3600,
        password_rounds=4,
        clock=lambda: FIXED_NOW,
    )


def identity_for(node):
    return Identity(node_id=node.entity_id, node_type=node.type, node_name=node.name)


@pytest.fixture
def chain(app):
    """
    One node per level, each the child of the previous one.
    Returns {NodeType: (node, raw_password)}.
    """
    root, root_password = app.node_service.create_root("Bharat")
    created = {NodeType.BHARAT: (root, root_password)}
    parent = root
    for node_type in list(NodeType)[1:]:
        node, password = app.node_service.create_node(
            f"{node_type.value} One", node_type, parent.entity_id)
        created[node_type] = (node, password)
        parent = node
    return created


@pytest.fixture
def branch(chain):
    return chain[NodeType.BRANCH][0]


@pytest.fixture
def branch_actor(branch):
    return identity_for(branch)


@pytest.fixture
def root_actor(chain):
    return identity_for(chain[NodeType.BHARAT][0])


@pytest.fixture
def as_identity():
    return identity_for
