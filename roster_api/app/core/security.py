"""
Bearer tokens, password hashing and actor resolution.

Tokens are compact JWTs signed with HMAC-SHA256 using
``settings.secret_key``; passwords are stored as PBKDF2-HMAC-SHA256
``salthex$hashhex`` strings.  The ``get_current_user`` dependency turns
the ``Authorization`` header into an explicit :class:`Actor` that every
service call receives as a parameter.  There is no ambient "current
user" anywhere in the service layer.
"""

import base64
import hashlib
import hmac
import json
import os
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .db import ADMIN_ROLES, get_connection
from .errors import AuthenticationError, AuthorizationError

PBKDF2_ITERATIONS = 100_000


@dataclass(frozen=True)
class Actor:
    """The authenticated user on whose behalf an operation runs."""

    user_id: int
    email: str
    role_id: int

    @property
    def is_admin(self) -> bool:
        return self.role_id in ADMIN_ROLES


def _b64_url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes) -> bytes:
    return hmac.new(settings.secret_key.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(data: Dict[str, str], expires_delta: Optional[int] = None) -> str:
    """Create a signed token carrying ``data`` plus an ``exp`` claim.

    Parameters
    ----------
    data : dict
        Claims to embed, normally ``{"sub": "<email>"}``.
    expires_delta : Optional[int]
        Lifetime in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.
    """
    claims = dict(data)
    lifetime = expires_delta or settings.access_token_expire_minutes * 60
    claims["exp"] = int(time.time()) + lifetime
    header_b64 = _b64_url_encode(json.dumps({"alg": "HS256", "typ": "JWT"}, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
    signature = _sign(f"{header_b64}.{payload_b64}".encode("utf-8"))
    return f"{header_b64}.{payload_b64}.{_b64_url_encode(signature)}"


def decode_access_token(token: str) -> Optional[Dict[str, str]]:
    """Return the token claims, or ``None`` if the token is malformed,
    wrongly signed or expired."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    try:
        actual_sig = _b64_url_decode(signature_b64)
        expected_sig = _sign(f"{header_b64}.{payload_b64}".encode("utf-8"))
        if not hmac.compare_digest(expected_sig, actual_sig):
            return None
        claims = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if claims.get("exp") is None or int(claims["exp"]) < int(time.time()):
        return None
    return claims


security = HTTPBearer(auto_error=False)


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Actor:
    """Resolve the bearer token to an :class:`Actor`.

    Missing, invalid or expired tokens, unknown subjects and disabled
    accounts raise :class:`AuthenticationError` (401).
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    claims = decode_access_token(credentials.credentials)
    if not claims:
        raise AuthenticationError("Invalid or expired token")

    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT id, email, role_id, disabled FROM users WHERE email = ?",
            (claims.get("sub"),),
        ).fetchone()
    finally:
        conn.close()
    if not row:
        raise AuthenticationError("User no longer exists")
    if row["disabled"]:
        raise AuthenticationError("User account disabled")
    return Actor(user_id=row["id"], email=row["email"], role_id=row["role_id"])


def get_optional_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Optional[Actor]:
    """Like ``get_current_user`` but anonymous callers get ``None``.

    A token that is present but invalid still answers 401.
    """
    if credentials is None:
        return None
    return get_current_user(credentials)


def require_roles(*role_ids: int) -> Callable[[Actor], Actor]:
    """Dependency factory restricting a route to the given role ids.

    ``Depends(require_roles(1, 2))`` admits super administrators and
    administrators; everybody else gets 403.
    """

    def _role_dependency(actor: Actor = Depends(get_current_user)) -> Actor:
        if actor.role_id not in role_ids:
            raise AuthorizationError("Insufficient permissions")
        return actor

    return _role_dependency


require_admin = require_roles(*ADMIN_ROLES)


def hash_password(password: str) -> str:
    """Hash a password with a random 16-byte salt."""
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"{salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Check ``plain_password`` against a ``salthex$hashhex`` string."""
    if not hashed_password or "$" not in hashed_password:
        return False
    salt_hex, hash_hex = hashed_password.split("$", 1)
    try:
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(dk, stored_hash)
