"""
Tests for node creation, codes and passwords, rename, reset and delete.
"""
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from orgledger.auth.passwords import verify_password
from orgledger.errors import Forbidden, NotFound, ServerError, ValidationError
from orgledger.models import NodeType
from orgledger.services.nodes import MAX_CODE_ATTEMPTS


def test_create_root_once(app):
    root, password = app.node_service.create_root("Bharat")
    assert root.is_root
    assert root.parent_id is None
    assert root.node_code.startswith("BHARAT-")
    assert len(password) == 10

    with pytest.raises(ValidationError):
        app.node_service.create_root("Another")


def test_create_node_returns_raw_password(app, chain):
    kshetra, password = chain[NodeType.KSHETRA]
    stored = app.nodes.get_by_id(kshetra.entity_id)

    assert stored.password != password
    assert verify_password(password, stored.password)
    assert stored.plain_password == password
    assert stored.node_code.startswith("KSHETRAONE-")


@pytest.mark.parametrize("name, node_type, message", [
    ("", "Kshetra", "Name and type are required"),
    ("North", None, "Name and type are required"),
    ("North", "Planet", "Invalid node type"),
    ("North", "Prant", "Cannot create Prant under Bharat"),
])
def test_create_node_validation(app, chain, name, node_type, message):
    root = chain[NodeType.BHARAT][0]
    with pytest.raises(ValidationError) as exc_info:
        app.node_service.create_node(name, node_type, root.entity_id)
    assert exc_info.value.message == message


def test_create_node_missing_parent(app, chain):
    with pytest.raises(NotFound) as exc_info:
        app.node_service.create_node("North", "Kshetra", "missing")
    assert exc_info.value.message == "Parent node not found"


def test_create_under_branch_is_rejected(app, branch):
    with pytest.raises(ValidationError):
        app.node_service.create_node("Too deep", "Branch", branch.entity_id)


def test_actor_must_reach_parent(app, chain, as_identity):
    branch_actor = as_identity(chain[NodeType.BRANCH][0])
    with pytest.raises(Forbidden):
        app.node_service.create_node(
            "North", "Kshetra", chain[NodeType.BHARAT][0].entity_id, actor=branch_actor)


def test_node_codes_are_unique(app, chain):
    root = chain[NodeType.BHARAT][0]
    codes = {
        app.node_service.create_node("Same Name", "Kshetra", root.entity_id)[0].node_code
        for _ in range(5)
    }
    assert len(codes) == 5


def test_code_collision_retries(app, chain):
    root = chain[NodeType.BHARAT][0]
    taken = chain[NodeType.KSHETRA][0].node_code
    with patch('orgledger.services.nodes.generate_node_code',
               side_effect=[taken, taken, "FRESH-ABC123"]) as mock_generate:
        node, _ = app.node_service.create_node("Fresh", "Kshetra", root.entity_id)
    assert node.node_code == "FRESH-ABC123"
    assert mock_generate.call_count == 3


def test_code_generation_gives_up(app, chain):
    root = chain[NodeType.BHARAT][0]
    taken = chain[NodeType.KSHETRA][0].node_code
    with patch('orgledger.services.nodes.generate_node_code', return_value=taken) as mock_generate:
        with pytest.raises(ServerError) as exc_info:
            app.node_service.create_node("Fresh", "Kshetra", root.entity_id)
    assert exc_info.value.message == "Failed to generate unique node code"
    assert mock_generate.call_count == MAX_CODE_ATTEMPTS


def test_unique_index_rejects_code_taken_between_check_and_insert(app, chain):
    root = chain[NodeType.BHARAT][0]
    taken = chain[NodeType.KSHETRA][0].node_code
    with patch.object(app.nodes, 'get_by_code', return_value=None) as mock_lookup, \
            patch('orgledger.services.nodes.generate_node_code',
                  side_effect=[taken, "FRESH-ABC123"]):
        node, _ = app.node_service.create_node("Fresh", "Kshetra", root.entity_id)

    assert node.node_code == "FRESH-ABC123"
    assert mock_lookup.call_count == 2
    assert app.nodes.get_count({'node_code': taken}) == 1


def test_simultaneous_creations_share_one_code(app):
    root, _ = app.node_service.create_root("Bharat")

    def attempt(i):
        try:
            return app.node_service.create_node(f"Kshetra {i}", "Kshetra", root.entity_id)[0]
        except ServerError as e:
            return e

    with patch('orgledger.services.nodes.generate_node_code', return_value="SAME-000001"):
        with ThreadPoolExecutor(max_workers=MAX_CODE_ATTEMPTS) as pool:
            results = list(pool.map(attempt, range(MAX_CODE_ATTEMPTS)))

    created = [r for r in results if not isinstance(r, ServerError)]
    assert len(created) == 1
    assert len(results) - len(created) == MAX_CODE_ATTEMPTS - 1
    assert app.nodes.get_count({'node_code': "SAME-000001"}) == 1
    assert [n.entity_id for n in app.nodes.get_children(root.entity_id)] == [created[0].entity_id]


def test_rename_node(app, chain):
    jila = chain[NodeType.JILA][0]
    renamed = app.node_service.rename_node(jila.entity_id, "  Pune  ")
    assert renamed.name == "Pune"
    assert app.nodes.get_by_id(jila.entity_id).name == "Pune"

    with pytest.raises(ValidationError):
        app.node_service.rename_node(jila.entity_id, " ")


def test_reset_password(app, chain):
    jila, old_password = chain[NodeType.JILA]
    _, new_password = app.node_service.reset_password(jila.entity_id)

    stored = app.nodes.get_by_id(jila.entity_id)
    assert verify_password(new_password, stored.password)
    assert not verify_password(old_password, stored.password)


def test_delete_node_requires_password(app, chain):
    khand, password = chain[NodeType.KHAND]
    with pytest.raises(Forbidden) as exc_info:
        app.node_service.delete_node(khand.entity_id, "wrong-password")
    assert exc_info.value.message == "Incorrect Password"

    app.node_service.delete_node(khand.entity_id, password)
    with pytest.raises(NotFound):
        app.node_service.get_node(khand.entity_id)
    # no cascade: the Branch below is still stored
    assert app.nodes.get_by_id(chain[NodeType.BRANCH][0].entity_id) is not None


def test_get_node_details_for_branch(app, chain, as_identity):
    nagar = chain[NodeType.NAGAR][0]
    branch = chain[NodeType.BRANCH][0]
    actor = as_identity(nagar)
    app.member_service.create_member(actor, {'name': "Ravi", 'branch_id': branch.entity_id})

    details = app.node_service.get_node_details(branch.node_code, actor)

    assert details['node'].entity_id == branch.entity_id
    assert [step['type'] for step in details['path']] == ['Nagar', 'Khand', 'Branch']
    assert details['total_members'] == 1
    assert [m.name for m in details['members']] == ["Ravi"]


def test_get_node_details_forbidden_upwards(app, chain, as_identity):
    actor = as_identity(chain[NodeType.BRANCH][0])
    with pytest.raises(Forbidden):
        app.node_service.get_node_details(chain[NodeType.JILA][0].node_code, actor)
