"""
Request handlers, independent of any web framework.

Each handler takes the Application, the raw `Authorization` header where the
operation is protected, and plain request values, and returns a Response
whose body is `{success, message?, data?, errors?}`.
"""

import functools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from orgledger.app import Application
from orgledger.auth.identity import Identity
from orgledger.errors import Forbidden, NotFound, OrgLedgerError, ValidationError
from orgledger.models import Node

logger = logging.getLogger(__name__)

# Request bodies use camelCase; services use snake_case.
BODY_ALIASES = {
    'parentId': 'parent_id',
    'branchId': 'branch_id',
    'memberId': 'member_id',
    'nodeCode': 'node_code',
    'modeOfPayment': 'mode_of_payment',
    'birthYear': 'birth_year',
    'sanghYears': 'sangh_years',
    'otherOccupation': 'other_occupation',
    'educationLevel': 'education_level',
}


@dataclass
class Response:
    status: int
    body: Dict[str, Any]


def success(data: Any = None, message: Optional[str] = None, status: int = 200, **extra) -> Response:
    body: Dict[str, Any] = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    body.update(extra)
    return Response(status, body)


def failure(status: int, message: str, errors=None) -> Response:
    body: Dict[str, Any] = {'success': False, 'message': message}
    if errors:
        body['errors'] = errors
    return Response(status, body)


def handler(server_message: str = "Server error"):
    """
    Convert expected errors into their status and message; anything else is
    logged and answered with a generic 500.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Response:
            try:
                return func(*args, **kwargs)
            except OrgLedgerError as e:
                return failure(e.status_code, e.message, getattr(e, 'errors', None))
            except Exception:
                logger.exception("%s failed", func.__name__)
                return failure(500, server_message)
        return wrapper
    return decorator


def normalize_body(body: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {BODY_ALIASES.get(k, k): v for k, v in (body or {}).items()}


def parse_year(year) -> Optional[int]:
    if year in (None, ''):
        return None
    try:
        return int(year)
    except (TypeError, ValueError):
        raise ValidationError("Year must be a number")


def _authenticate(app: Application, authorization: Optional[str]) -> Identity:
    return app.authenticator.authenticate(authorization)


def _require_access(app: Application, actor: Identity, node_id: str) -> Node:
    """The node, provided the actor may manage it."""
    node = app.node_service.get_node(node_id)
    if not app.hierarchy.has_access(actor.node_id, node.entity_id):
        raise Forbidden("Access Denied")
    return node


def _node_with_parent(app: Application, node) -> Dict[str, Any]:
    data = node.as_api_dict()
    parent = app.nodes.get_by_id(node.parent_id) if node.parent_id else None
    data['parent'] = parent.summary() if parent else None
    return data


# --- health / auth ---------------------------------------------------------

def health(app: Application) -> Response:
    return success(message="Donation Collection System API is running",
                   timestamp=datetime.now(timezone.utc).isoformat())


@handler("Server error during login")
def login(app: Application, node_code: str, password: str) -> Response:
    return success(app.authenticator.login(node_code, password), "Login successful")


@handler("Server error during authentication")
def get_me(app: Application, authorization: Optional[str]) -> Response:
    actor = _authenticate(app, authorization)
    node = app.nodes.get_by_id(actor.node_id)
    if node is None:
        raise NotFound("Node not found")
    return success(_node_with_parent(app, node))


# --- nodes -----------------------------------------------------------------

@handler("Server error while creating node")
def create_node(app: Application, authorization: Optional[str], body: Dict[str, Any]) -> Response:
    actor = _authenticate(app, authorization)
    body = normalize_body(body)
    node, raw_password = app.node_service.create_node(
        body.get('name'), body.get('type'), body.get('parent_id'), actor=actor)
    data = {
        'id': node.entity_id,
        'name': node.name,
        'type': node.type.value,
        'parent_id': node.parent_id,
        'node_code': node.node_code,
        'password': raw_password,
    }
    return success(data, "Node created successfully", status=201)


@handler()
def edit_node(app: Application, authorization: Optional[str], node_id: str, body: Dict[str, Any]) -> Response:
    actor = _authenticate(app, authorization)
    _require_access(app, actor, node_id)
    node = app.node_service.rename_node(node_id, normalize_body(body).get('name'))
    return success(node.as_api_dict(), "Region edited")


@handler()
def delete_node(app: Application, authorization: Optional[str], node_id: str, body: Dict[str, Any]) -> Response:
    actor = _authenticate(app, authorization)
    _require_access(app, actor, node_id)
    app.node_service.delete_node(node_id, normalize_body(body).get('password'))
    return success(message="Region Deleted")


@handler()
def get_node(app: Application, authorization: Optional[str], node_id: str) -> Response:
    actor = _authenticate(app, authorization)
    node = _require_access(app, actor, node_id)
    return success(_node_with_parent(app, node))


@handler()
def get_node_children(app: Application, authorization: Optional[str], node_id: str) -> Response:
    actor = _authenticate(app, authorization)
    _require_access(app, actor, node_id)
    return success([child.as_api_dict() for child in app.node_service.get_children(node_id)])


@handler()
def get_node_by_code(app: Application, authorization: Optional[str], code: str) -> Response:
    actor = _authenticate(app, authorization)
    details = app.node_service.get_node_details(code, actor)
    extra: Dict[str, Any] = {
        'children': [child.as_api_dict() for child in details['children']],
        'path': details['path'],
        'totalMembers': details['total_members'],
    }
    if 'members' in details:
        extra['members'] = [member.as_api_dict() for member in details['members']]
    return success(_node_with_parent(app, details['node']), **extra)


# --- members ---------------------------------------------------------------

@handler("Server error while creating member")
def create_member(app: Application, authorization: Optional[str], body: Dict[str, Any]) -> Response:
    actor = _authenticate(app, authorization)
    member = app.member_service.create_member(actor, normalize_body(body))
    return success(member.as_api_dict(), "Member created successfully", status=201)


@handler("Server error while updating member")
def edit_member(app: Application, authorization: Optional[str], member_id: str, body: Dict[str, Any]) -> Response:
    actor = _authenticate(app, authorization)
    member = app.member_service.edit_member(actor, member_id, normalize_body(body))
    return success(member.as_api_dict(), "Member updated successfully")


@handler()
def delete_member(app: Application, authorization: Optional[str], member_id: str) -> Response:
    actor = _authenticate(app, authorization)
    app.member_service.delete_member(actor, member_id)
    return success(message="Member Deleted")


@handler()
def get_my_members(app: Application, authorization: Optional[str]) -> Response:
    actor = _authenticate(app, authorization)
    return success(app.member_service.list_my_members(actor))


@handler()
def get_branch_members(app: Application, authorization: Optional[str], branch_id: str) -> Response:
    actor = _authenticate(app, authorization)
    return success(app.member_service.list_branch_members(actor, branch_id))


@handler()
def get_member(app: Application, authorization: Optional[str], member_id: str) -> Response:
    actor = _authenticate(app, authorization)
    return success(app.member_service.member_detail(actor, member_id))


# --- payments --------------------------------------------------------------

@handler("Server error while recording payment")
def create_payment(app: Application, authorization: Optional[str], body: Dict[str, Any]) -> Response:
    actor = _authenticate(app, authorization)
    body = normalize_body(body)
    payment = app.payment_service.create_payment(
        actor,
        body.get('member_id'),
        body.get('amount'),
        mode_of_payment=body.get('mode_of_payment'),
        payment_date=body.get('date'),
        description=body.get('description'),
    )
    return success(payment.as_api_dict(), "Payment recorded successfully", status=201)


@handler()
def get_my_branch_payments(app: Application, authorization: Optional[str]) -> Response:
    actor = _authenticate(app, authorization)
    return success(app.payment_service.my_branch_payments(actor))


@handler()
def get_member_payments(app: Application, authorization: Optional[str], member_id: str) -> Response:
    actor = _authenticate(app, authorization)
    return success(app.payment_service.member_payments(actor, member_id))


@handler()
def get_payment(app: Application, authorization: Optional[str], payment_id: str) -> Response:
    actor = _authenticate(app, authorization)
    return success(app.payment_service.payment_detail(actor, payment_id))


# --- collections -----------------------------------------------------------

@handler()
def get_collection_report(app: Application, authorization: Optional[str], node_id: str, year=None) -> Response:
    actor = _authenticate(app, authorization)
    _require_access(app, actor, node_id)
    return success(app.reporter.generate_report(node_id, parse_year(year)).as_dict())


@handler()
def get_node_collection(app: Application, authorization: Optional[str], node_id: str, year=None) -> Response:
    actor = _authenticate(app, authorization)
    _require_access(app, actor, node_id)
    year = parse_year(year) or app.reporter.now().year
    total = app.reporter.total_collection(node_id, year)
    return success({'nodeId': node_id, 'year': year, 'totalCollection': total})


@handler()
def get_my_collection_summary(app: Application, authorization: Optional[str], year=None) -> Response:
    actor = _authenticate(app, authorization)
    return success(app.reporter.generate_report(actor.node_id, parse_year(year)).as_dict())
