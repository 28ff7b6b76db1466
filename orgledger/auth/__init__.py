"""
Credentials: password hashing, access tokens and the request identity.
`Authenticator` lives in `orgledger.auth.authenticator` (it depends on the repositories).
"""

from .identity import Identity
from .passwords import hash_password, verify_password, is_password_hash
from .tokens import TokenExpired, TokenInvalid, generate_access_token, decode_access_token
