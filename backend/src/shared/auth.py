"""
Authorization gate: resolves the caller's wallet address from the bearer
session token of an API Gateway event.
"""
from typing import Optional

from .errors import Unauthenticated
from .models import AuthContext

BEARER_PREFIX = 'Bearer '


def get_bearer_token(event: dict) -> Optional[str]:
    """
    Extract the token from an `Authorization: Bearer <token>` header.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        Token string or None if the header is absent or malformed
    """
    headers = event.get('headers') or {}
    # API Gateway preserves client casing for REST APIs, lower-cases for HTTP APIs
    value = next((v for k, v in headers.items() if k.lower() == 'authorization'), None)
    if not isinstance(value, str) or not value.startswith(BEARER_PREFIX):
        return None
    token = value[len(BEARER_PREFIX):].strip()
    return token or None


def authenticate(event: dict, sessions) -> AuthContext:
    """
    Validate the session token of a request.

    Every request is validated on its own; nothing is cached between calls.

    Raises:
        Unauthenticated: header missing/malformed or token invalid/expired
    """
    token = get_bearer_token(event)
    if not token:
        raise Unauthenticated('Missing authorization header')

    claims = sessions.validate(token)
    if claims is None:
        raise Unauthenticated('Invalid or expired token')

    return AuthContext(address=claims.address)
