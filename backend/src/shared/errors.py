"""
Typed exceptions for the marketplace services.

Every request-level error carries the HTTP status code and a machine-readable
code, so the request boundary can turn it into a structured response without
parsing messages:

    MarketplaceError
    +-- NotFound             404  entity absent
    +-- NotAuthorized        403  caller lacks the required role
    +-- InvalidState         409  current status forbids the transition
    +-- ValidationError      400  malformed or out-of-range input
    +-- Unauthenticated      401  missing/invalid session token
    +-- SignatureInvalid     401  wallet challenge verification failed
    +-- UpstreamUnavailable  503  on-chain read failed

ConfigurationError is raised at start-up only and is not a request error.
"""
from typing import Any, Dict, Optional


class MarketplaceError(Exception):
    """Base class for errors recovered at the request boundary."""

    status_code = 500
    code = 'INTERNAL_ERROR'
    default_message = 'Internal Server Error'

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {'error': self.message, 'code': self.code}
        if self.details:
            body['details'] = self.details
        return body


class NotFound(MarketplaceError):
    status_code = 404
    code = 'NOT_FOUND'
    default_message = 'Not found'


class NotAuthorized(MarketplaceError):
    status_code = 403
    code = 'NOT_AUTHORIZED'
    default_message = 'Not authorized'


class InvalidState(MarketplaceError):
    status_code = 409
    code = 'INVALID_STATE'
    default_message = 'Operation not allowed in the current state'


class ValidationError(MarketplaceError):
    status_code = 400
    code = 'VALIDATION_ERROR'
    default_message = 'Invalid input'


class Unauthenticated(MarketplaceError):
    status_code = 401
    code = 'UNAUTHENTICATED'
    default_message = 'Missing authorization header'


class SignatureInvalid(MarketplaceError):
    status_code = 401
    code = 'SIGNATURE_INVALID'
    default_message = 'Invalid signature'


class UpstreamUnavailable(MarketplaceError):
    status_code = 503
    code = 'UPSTREAM_UNAVAILABLE'
    default_message = 'Chain RPC unavailable'


class ConfigurationError(RuntimeError):
    """Raised when the process cannot start with the given configuration."""
