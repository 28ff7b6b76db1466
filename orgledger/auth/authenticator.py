import logging
from typing import Any, Dict, Optional

from orgledger.auth.identity import Identity
from orgledger.auth.passwords import verify_password
from orgledger.auth.tokens import TokenExpired, TokenInvalid, decode_access_token, generate_access_token
from orgledger.errors import Unauthorized, ValidationError
from orgledger.repositories import NodeRepository

logger = logging.getLogger(__name__)

BEARER_PREFIX = 'Bearer '


class Authenticator:
    """Issues access tokens on login and resolves them back to an Identity."""

    def __init__(self, nodes: NodeRepository, secret_key: str, expiration: int):
        self.nodes = nodes
        self.secret_key = secret_key
        self.expiration = expiration

    def login(self, node_code: str, password: str) -> Dict[str, Any]:
        if not node_code or not password:
            raise ValidationError("Node code and password are required")

        node = self.nodes.get_by_code(node_code)
        if node is None or not verify_password(password, node.password):
            logger.info("Failed login for node code %s", node_code)
            raise Unauthorized("Invalid credentials")

        token, expires_at = generate_access_token(node.entity_id, self.secret_key, self.expiration)
        return {
            'token': token,
            'expiresAt': expires_at,
            'nodeId': node.entity_id,
            'type': node.type.value,
            'name': node.name,
            'nodeCode': node.node_code,
        }

    def authenticate(self, authorization: Optional[str]) -> Identity:
        """
        Resolve an `Authorization` header value to the node it was issued for.

        Raises:
            Unauthorized: missing, malformed, expired token, or a node that no longer exists.
        """
        token = (authorization or '').strip()
        if token.startswith(BEARER_PREFIX):
            token = token[len(BEARER_PREFIX):].strip()
        if not token:
            raise Unauthorized("Access denied. No token provided.")

        try:
            node_id = decode_access_token(token, self.secret_key, self.expiration)
        except TokenExpired:
            raise Unauthorized("Token expired")
        except TokenInvalid:
            raise Unauthorized("Invalid token")

        node = self.nodes.get_by_id(node_id)
        if node is None:
            raise Unauthorized("Token is invalid. Node not found.")
        return Identity(node_id=node.entity_id, node_type=node.type, node_name=node.name)
