"""
Session tokens for wallet-authenticated users.

Tokens are HS256 JWTs carrying the lower-cased wallet address, issued-at and
expiry (epoch seconds, seven days after issue).
"""
import time
from dataclasses import dataclass
from typing import Optional

from jose import JWTError, jwt

from .config import config
from .errors import ConfigurationError
from .logging import logger

SESSION_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days
MIN_SECRET_LENGTH = 32


@dataclass(frozen=True)
class SessionClaims:
    """Validated payload of a session token."""
    address: str
    iat: int
    exp: int


class SessionIssuer:
    """Mints and validates session tokens with a server-held secret."""

    def __init__(self, secret: str, algorithm: str = 'HS256', ttl_seconds: int = SESSION_TTL_SECONDS):
        if not secret or len(secret) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f'JWT_SECRET must be set to at least {MIN_SECRET_LENGTH} characters'
            )
        self._secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_config(cls, cfg=config) -> 'SessionIssuer':
        return cls(cfg.JWT_SECRET, algorithm=cfg.JWT_ALGORITHM)

    def issue(self, address: str, now: Optional[float] = None) -> str:
        """Issue a token for `address`, valid for seven days from `now`."""
        issued_at = int(now if now is not None else time.time())
        payload = {
            'address': address.lower(),
            'iat': issued_at,
            'exp': issued_at + self.ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate(self, token: str) -> Optional[SessionClaims]:
        """
        Verify signature and expiry of a token.

        Returns:
            SessionClaims, or None for any invalid, tampered or expired token
        """
        if not token or not isinstance(token, str):
            return None

        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info(f"Rejected session token: {e}")
            return None

        address = payload.get('address')
        issued_at = payload.get('iat')
        expires_at = payload.get('exp')
        if not isinstance(address, str) or not isinstance(issued_at, int) or not isinstance(expires_at, int):
            return None

        return SessionClaims(address=address.lower(), iat=issued_at, exp=expires_at)
