import hashlib
import hmac
import time


class TokenExpired(Exception):
    """The token was well formed and correctly signed, but is too old."""


class TokenInvalid(Exception):
    """The token is malformed or its signature does not match."""


def _sign(entity_id: str, timestamp: str, secret_key: str, encoding: str) -> str:
    return hmac.new(
        key=secret_key.encode(encoding),
        msg=(str(entity_id) + timestamp).encode(encoding),
        digestmod=hashlib.sha256
    ).hexdigest()


def generate_access_token(entity_id, secret_key: str, expiration: int, encoding: str = 'utf-8'):
    """
    Create an access token `entity_id:timestamp:signature` signed with HMAC-SHA256.

    Returns:
        (token, expires_at): the token and its expiry as a unix timestamp.
    """
    timestamp = str(int(time.time()))
    signature = _sign(entity_id, timestamp, secret_key, encoding)
    return f"{entity_id}:{timestamp}:{signature}", int(timestamp) + expiration


def decode_access_token(token, secret_key: str, expiration: int, encoding: str = 'utf-8') -> str:
    """
    Return the entity_id carried by `token`.

    Raises:
        TokenInvalid: malformed token or bad signature.
        TokenExpired: valid signature but older than `expiration` seconds.
    """
    try:
        entity_id, timestamp, signature = str(token).split(':')
        issued_at = int(timestamp)
    except ValueError as ex:
        raise TokenInvalid("Malformed token") from ex

    expected_signature = _sign(entity_id, timestamp, secret_key, encoding)
    if not hmac.compare_digest(signature, expected_signature):
        raise TokenInvalid("Signature mismatch")
    if issued_at + expiration < int(time.time()):
        raise TokenExpired("Token expired")
    return entity_id
