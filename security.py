"""
security.py: password hashing, session tokens and the auth gate

- Passwords are hashed with werkzeug's salted PBKDF2; nothing else is ever
  used to hash a credential.
- Session tokens are HS256 JWTs carrying ``userId``, ``iat``, ``exp`` and a
  random ``jti``. They are never stored server side and simply stop
  verifying at ``exp``.
- ``login_required`` guards a view: it resolves the bearer token to a user id
  and exposes it as ``g.user_id`` for the rest of the request.
"""

import logging
import secrets
import time
from datetime import timedelta
from functools import wraps

from flask import current_app, g, request
from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from errors import Unauthorized

logger = logging.getLogger(__name__)

DEFAULT_HASH_METHOD = "pbkdf2:sha256"
TOKEN_ALGORITHM = "HS256"
DEFAULT_TOKEN_LIFETIME = timedelta(days=7)


# ==================== PASSWORDS ====================

def hash_password(password, method=DEFAULT_HASH_METHOD):
    """Return a salted digest; hashing the same password twice gives two different digests."""
    return generate_password_hash(password, method=method)


def verify_password(password, password_hash):
    """True only if ``password`` matches ``password_hash``. Malformed digests are a mismatch."""
    if not isinstance(password, str) or not isinstance(password_hash, str) or not password_hash:
        return False
    try:
        return check_password_hash(password_hash, password)
    except (ValueError, TypeError):
        # unknown method or unparsable iteration count
        return False


# ==================== TOKENS ====================

class TokenIssuer:
    """Issues and verifies signed session tokens.

    Built once at startup from configuration and shared read-only between
    requests. ``clock`` returns epoch seconds and exists so expiry can be
    tested without sleeping.
    """

    def __init__(self, secret, lifetime=DEFAULT_TOKEN_LIFETIME, clock=time.time):
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret
        self._lifetime = int(lifetime.total_seconds())
        self._clock = clock

    def issue(self, user_id):
        issued_at = int(self._clock())
        claims = {
            "userId": int(user_id),
            "iat": issued_at,
            "exp": issued_at + self._lifetime,
            "jti": secrets.token_urlsafe(12),
        }
        return jwt.encode(claims, self._secret, algorithm=TOKEN_ALGORITHM)

    def verify(self, token):
        """Return the user id the token was issued for, or None.

        Malformed, forged and expired tokens all give None so callers
        cannot tell them apart.
        """
        if not isinstance(token, str) or not token:
            return None
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[TOKEN_ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError:
            return None

        user_id = claims.get("userId")
        expires_at = claims.get("exp")
        if not _is_int(user_id) or not _is_int(expires_at):
            return None
        # no leeway: the token is dead from exp onwards
        if not self._clock() < expires_at:
            return None
        return user_id


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


# ==================== AUTH GATE ====================

def bearer_token(header_value):
    """Pull the token out of an ``Authorization: Bearer <token>`` header value."""
    if not header_value or not header_value.startswith("Bearer "):
        raise Unauthorized("Authorization token required")
    token = header_value[len("Bearer "):].strip()
    if not token:
        raise Unauthorized("Authorization token required")
    return token


def authenticate_request():
    token = bearer_token(request.headers.get("Authorization"))
    user_id = current_app.extensions["token_issuer"].verify(token)
    if user_id is None:
        logger.debug("Rejected bearer token on %s %s", request.method, request.path)
        raise Unauthorized("Invalid or expired token")
    return user_id


def login_required(view):
    """Reject the request with 401 unless it carries a valid bearer token."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        g.user_id = authenticate_request()
        return view(*args, **kwargs)

    return wrapped
