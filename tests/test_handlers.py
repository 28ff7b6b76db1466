"""
Tests for the request handlers: status codes, envelopes and auth.
"""
from unittest.mock import patch

import pytest

from orgledger.api import handlers
from orgledger.models import NodeType


def bearer(app, node, password):
    response = handlers.login(app, node.node_code, password)
    assert response.status == 200
    return f"Bearer {response.body['data']['token']}"


@pytest.fixture
def root_auth(app, chain):
    return bearer(app, *chain[NodeType.BHARAT])


@pytest.fixture
def branch_auth(app, chain):
    return bearer(app, *chain[NodeType.BRANCH])


def test_health(app):
    response = handlers.health(app)
    assert response.status == 200
    assert response.body['success'] is True
    assert 'timestamp' in response.body


def test_login_failure(app, chain):
    response = handlers.login(app, chain[NodeType.JILA][0].node_code, "wrong-password")
    assert response.status == 401
    assert response.body == {'success': False, 'message': "Invalid credentials"}


def test_protected_handler_without_token(app, chain):
    response = handlers.get_me(app, None)
    assert response.status == 401
    assert response.body['message'] == "Access denied. No token provided."


def test_get_me(app, chain, branch_auth):
    response = handlers.get_me(app, branch_auth)
    data = response.body['data']
    assert response.status == 200
    assert data['type'] == 'Branch'
    assert data['parent']['type'] == 'Khand'
    assert 'password' not in data
    assert 'plain_password' not in data


def test_create_node(app, chain, root_auth):
    response = handlers.create_node(app, root_auth, {
        'name': "Dakshin", 'type': "Kshetra", 'parentId': chain[NodeType.BHARAT][0].entity_id})

    assert response.status == 201
    data = response.body['data']
    assert data['type'] == 'Kshetra'
    assert data['node_code'].startswith("DAKSHIN-")
    assert len(data['password']) == 10
    assert handlers.login(app, data['node_code'], data['password']).status == 200


def test_create_node_wrong_level(app, chain, root_auth):
    response = handlers.create_node(app, root_auth, {
        'name': "Too deep", 'type': "Vibhag", 'parentId': chain[NodeType.KSHETRA][0].entity_id})
    assert response.status == 400
    assert response.body['message'] == "Cannot create Vibhag under Kshetra"


def test_edit_and_delete_node(app, chain, root_auth):
    jila, password = chain[NodeType.JILA]
    response = handlers.edit_node(app, root_auth, jila.entity_id, {'name': "Pune"})
    assert response.status == 200
    assert response.body['data']['name'] == "Pune"

    response = handlers.delete_node(app, root_auth, jila.entity_id, {'password': "nope"})
    assert response.status == 403
    assert response.body['message'] == "Incorrect Password"

    response = handlers.delete_node(app, root_auth, jila.entity_id, {'password': password})
    assert response.status == 200
    assert handlers.get_node(app, root_auth, jila.entity_id).status == 404


def test_node_access_is_downward_only(app, chain, branch_auth):
    response = handlers.get_node(app, branch_auth, chain[NodeType.JILA][0].entity_id)
    assert response.status == 403


def test_get_node_children_and_by_code(app, chain, root_auth):
    khand = chain[NodeType.KHAND][0]
    children = handlers.get_node_children(app, root_auth, khand.entity_id).body['data']
    assert [child['type'] for child in children] == ['Branch']

    branch = chain[NodeType.BRANCH][0]
    response = handlers.get_node_by_code(app, root_auth, branch.node_code)
    assert response.status == 200
    assert len(response.body['path']) == 8
    assert response.body['members'] == []
    assert response.body['totalMembers'] == 0


def test_member_endpoints(app, chain, branch_auth):
    response = handlers.create_member(app, branch_auth, {'name': "Ravi", 'sanghYears': 3})
    assert response.status == 201
    member = response.body['data']
    assert member['sangh_years'] == 3

    response = handlers.edit_member(app, branch_auth, member['entity_id'], {'email': "bad"})
    assert response.status == 400
    assert response.body['errors'] == ["Please enter a valid email address"]

    assert len(handlers.get_my_members(app, branch_auth).body['data']) == 1
    assert handlers.get_member(app, branch_auth, member['entity_id']).body['data']['name'] == "Ravi"
    assert handlers.delete_member(app, branch_auth, member['entity_id']).status == 200
    assert handlers.get_member(app, branch_auth, member['entity_id']).status == 404


def test_branch_members_of_another_branch_is_forbidden(app, chain, branch_auth, root_auth):
    khand = chain[NodeType.KHAND][0]
    other = handlers.create_node(app, root_auth, {
        'name': "Branch Two", 'type': "Branch", 'parentId': khand.entity_id}).body['data']

    response = handlers.get_branch_members(app, branch_auth, other['id'])
    assert response.status == 403


def test_payment_endpoints(app, chain, branch_auth):
    member = handlers.create_member(app, branch_auth, {'name': "Ravi"}).body['data']
    response = handlers.create_payment(app, branch_auth, {
        'memberId': member['entity_id'], 'amount': 100, 'modeOfPayment': "upi", 'date': "2024-06-01"})
    assert response.status == 201
    payment = response.body['data']
    assert payment['mode_of_payment'] == 'upi'

    assert handlers.get_payment(app, branch_auth, payment['entity_id']).body['data']['member']['name'] == "Ravi"
    assert handlers.get_member_payments(app, branch_auth, member['entity_id']).body['data']['total'] == 100
    assert handlers.get_my_branch_payments(app, branch_auth).body['data']['total'] == 100

    response = handlers.create_payment(app, branch_auth, {'memberId': member['entity_id'], 'amount': -1})
    assert response.status == 400


def test_collection_endpoints(app, chain, branch_auth, root_auth):
    member = handlers.create_member(app, branch_auth, {'name': "Ravi"}).body['data']
    handlers.create_payment(app, branch_auth, {'memberId': member['entity_id'], 'amount': 100,
                                               'date': "2024-03-01T10:00:00Z"})
    root = chain[NodeType.BHARAT][0]

    report = handlers.get_collection_report(app, root_auth, root.entity_id, "2024").body['data']
    assert report['totalCollection'] == 100
    assert report['childPerformances'][0]['total'] == 100

    total = handlers.get_node_collection(app, root_auth, root.entity_id, 2024).body['data']
    assert total == {'nodeId': root.entity_id, 'year': 2024, 'totalCollection': 100}

    summary = handlers.get_my_collection_summary(app, branch_auth, 2024).body['data']
    assert summary['totalMembers'] == 1

    assert handlers.get_collection_report(app, root_auth, root.entity_id, "last").status == 400
    assert handlers.get_collection_report(app, branch_auth, root.entity_id, 2024).status == 403


def test_unexpected_errors_become_500(app, chain, root_auth):
    with patch.object(app.reporter, 'generate_report', side_effect=RuntimeError("db down")):
        response = handlers.get_my_collection_summary(app, root_auth)
    assert response.status == 500
    assert response.body == {'success': False, 'message': "Server error"}
