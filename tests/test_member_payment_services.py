"""
Tests for member management and the payment ledger.
"""
import pytest

from orgledger.app import Application
from orgledger.errors import Forbidden, NotFound, ValidationError
from orgledger.models import NodeType, PaymentMode

from conftest import TEST_SECRET


@pytest.fixture
def other_branch(app, chain):
    khand = chain[NodeType.KHAND][0]
    node, _ = app.node_service.create_node("Branch Two", NodeType.BRANCH, khand.entity_id)
    return node


@pytest.fixture
def member(app, branch_actor):
    return app.member_service.create_member(branch_actor, {'name': "Ravi", 'email': "Ravi@Example.com"})


def test_branch_creates_member_in_own_branch(member, branch):
    assert member.branch_id == branch.entity_id
    assert member.member_code == "RSS-00000001"
    assert member.email == "ravi@example.com"


def test_create_member_validation(app, branch_actor, root_actor, chain):
    with pytest.raises(ValidationError, match="Member name is required"):
        app.member_service.create_member(branch_actor, {'name': ""})
    with pytest.raises(ValidationError, match="Branch ID is required"):
        app.member_service.create_member(root_actor, {'name': "Ravi"})

    with pytest.raises(ValidationError) as exc_info:
        app.member_service.create_member(root_actor, {'name': "Ravi", 'branch_id': chain[NodeType.KHAND][0].entity_id})
    assert exc_info.value.errors == ["Member must belong to a Branch node"]

    with pytest.raises(ValidationError) as exc_info:
        app.member_service.create_member(branch_actor, {'name': "Ravi", 'age': 300})
    assert "Age must be less than 120" in exc_info.value.errors


def test_branch_cannot_use_other_branch(app, branch_actor, other_branch):
    with pytest.raises(Forbidden):
        app.member_service.create_member(branch_actor, {'name': "Ravi", 'branch_id': other_branch.entity_id})
    with pytest.raises(Forbidden):
        app.member_service.list_branch_members(branch_actor, other_branch.entity_id)


def test_edit_member(app, branch_actor, member):
    edited = app.member_service.edit_member(branch_actor, member.entity_id,
                                            {'phone': " +91 98765 43210 ", 'branch_id': "ignored"})
    assert edited.phone == "+91 98765 43210"
    assert edited.branch_id == member.branch_id

    with pytest.raises(NotFound):
        app.member_service.edit_member(branch_actor, "missing", {'name': "X"})


def test_delete_member_keeps_payments(app, branch_actor, member):
    payment = app.payment_service.create_payment(branch_actor, member.entity_id, 100)
    app.member_service.delete_member(branch_actor, member.entity_id)

    assert app.member_service.list_my_members(branch_actor) == []
    assert app.payments.get_by_id(payment.entity_id) is not None


def test_list_members_with_totals(app, branch_actor, root_actor, member, branch):
    app.payment_service.create_payment(branch_actor, member.entity_id, 100)
    app.payment_service.create_payment(branch_actor, member.entity_id, 25.5)

    rows = app.member_service.list_my_members(branch_actor)
    assert rows[0]['total_paid'] == 125.5
    assert rows == app.member_service.list_branch_members(root_actor, branch.entity_id)

    with pytest.raises(Forbidden, match="Only Branch nodes"):
        app.member_service.list_my_members(root_actor)


def test_member_detail(app, branch_actor, member, branch):
    app.payment_service.create_payment(branch_actor, member.entity_id, 10, mode_of_payment="upi")
    detail = app.member_service.member_detail(branch_actor, member.entity_id)

    assert detail['branch'] == branch.summary()
    assert detail['total_paid'] == 10
    assert detail['payments'][0]['mode_of_payment'] == 'upi'


def test_create_payment(app, branch_actor, member):
    payment = app.payment_service.create_payment(
        branch_actor, member.entity_id, "150", mode_of_payment="cheque",
        payment_date="2024-03-01", description="  festival  ")

    assert payment.amount == 150
    assert payment.mode_of_payment == PaymentMode.CHEQUE
    assert payment.date.year == 2024 and payment.date.month == 3
    assert payment.description == "festival"


@pytest.mark.parametrize("amount, mode, payment_date", [
    (0, None, None),
    (-10, None, None),
    (10, "card", None),
    (10, None, "not-a-date"),
])
def test_create_payment_rejects_bad_input(app, branch_actor, member, amount, mode, payment_date):
    with pytest.raises(ValidationError):
        app.payment_service.create_payment(
            branch_actor, member.entity_id, amount, mode_of_payment=mode, payment_date=payment_date)


def test_create_payment_requires_member_and_amount(app, branch_actor, member):
    with pytest.raises(ValidationError, match="Member ID and amount are required"):
        app.payment_service.create_payment(branch_actor, member.entity_id, None)
    with pytest.raises(NotFound):
        app.payment_service.create_payment(branch_actor, "missing", 10)


def test_payment_scope_for_branch(app, root_actor, other_branch, as_identity, member):
    other_actor = as_identity(other_branch)
    with pytest.raises(Forbidden):
        app.payment_service.create_payment(other_actor, member.entity_id, 10)

    payment = app.payment_service.create_payment(root_actor, member.entity_id, 10)
    with pytest.raises(Forbidden):
        app.payment_service.payment_detail(other_actor, payment.entity_id)


def test_branch_payment_listing(app, branch_actor, member, branch):
    app.payment_service.create_payment(branch_actor, member.entity_id, 10, payment_date="2024-01-01")
    app.payment_service.create_payment(branch_actor, member.entity_id, 20, payment_date="2024-02-01")

    listing = app.payment_service.my_branch_payments(branch_actor)
    assert listing['total'] == 30
    assert listing['branchName'] == branch.name
    assert [row['amount'] for row in listing['payments']] == [20, 10]
    assert listing['payments'][0]['member']['name'] == "Ravi"

    history = app.payment_service.member_payments(branch_actor, member.entity_id)
    assert history['total'] == 30
    assert history['member']['id'] == member.entity_id


def test_branch_payment_listing_without_members(app, as_identity, other_branch, root_actor):
    listing = app.payment_service.my_branch_payments(as_identity(other_branch))
    assert listing == {'payments': [], 'total': 0, 'branchName': other_branch.name}
    with pytest.raises(Forbidden):
        app.payment_service.my_branch_payments(root_actor)


def build_subtree(app, top):
    parent = top
    for node_type in list(NodeType)[top.type.rank + 1:]:
        parent, _ = app.node_service.create_node(f"{top.name} {node_type.value}", node_type, parent.entity_id)
    return parent


def test_strict_access_confines_payments_to_own_subtree(as_identity):
    app = Application.in_memory(token_secret=TEST_SECRET, password_rounds=4, strict_access=True)
    root, _ = app.node_service.create_root("Bharat")
    kshetra_a, _ = app.node_service.create_node("Kshetra A", NodeType.KSHETRA, root.entity_id)
    kshetra_b, _ = app.node_service.create_node("Kshetra B", NodeType.KSHETRA, root.entity_id)
    branch_b = build_subtree(app, kshetra_b)
    actor_a, actor_b = as_identity(kshetra_a), as_identity(kshetra_b)

    member = app.member_service.create_member(actor_b, {'name': "Ravi", 'branch_id': branch_b.entity_id})
    payment = app.payment_service.create_payment(actor_b, member.entity_id, 10)

    with pytest.raises(Forbidden):
        app.member_service.member_detail(actor_a, member.entity_id)
    with pytest.raises(Forbidden):
        app.payment_service.create_payment(actor_a, member.entity_id, 10)
    with pytest.raises(Forbidden):
        app.payment_service.member_payments(actor_a, member.entity_id)
    with pytest.raises(Forbidden):
        app.payment_service.payment_detail(actor_a, payment.entity_id)

    assert app.payment_service.member_payments(actor_b, member.entity_id)['total'] == 10
    assert app.payment_service.member_payments(as_identity(root), member.entity_id)['total'] == 10


def test_create_member_checks_branch_before_access(app, chain, as_identity):
    nagar_actor = as_identity(chain[NodeType.NAGAR][0])
    for branch_id in ("missing", chain[NodeType.KSHETRA][0].entity_id):
        with pytest.raises(ValidationError) as exc_info:
            app.member_service.create_member(nagar_actor, {'name': "Ravi", 'branch_id': branch_id})
        assert exc_info.value.errors == ["Member must belong to a Branch node"]
