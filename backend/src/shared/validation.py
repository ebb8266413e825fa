"""
Input validation helpers shared by the service modules.
All helpers raise ValidationError with a message naming the offending field.
"""
import re
from datetime import datetime, timezone
from typing import Any, Optional

from .errors import ValidationError

ADDRESS_PATTERN = re.compile(r'^0x[a-fA-F0-9]{40}$')
SIGNATURE_PATTERN = re.compile(r'^0x[a-fA-F0-9]{130}$')
TX_HASH_PATTERN = re.compile(r'^0x[a-fA-F0-9]{64}$')
AMOUNT_PATTERN = re.compile(r'^\d+$')
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
URL_PATTERN = re.compile(r'^https?://[^\s/$.?#].[^\s]*$', re.IGNORECASE)


def require_address(value: Any, field: str = 'address') -> str:
    """Validate a 0x-prefixed 20-byte hex address and return it lower-cased."""
    if not isinstance(value, str) or not ADDRESS_PATTERN.match(value):
        raise ValidationError(f'{field} must be a 0x-prefixed 40 hex character address')
    return value.lower()


def require_signature(value: Any) -> str:
    if not isinstance(value, str) or not SIGNATURE_PATTERN.match(value):
        raise ValidationError('signature must be a 0x-prefixed 65-byte hex string')
    return value


def require_tx_hash(value: Any, field: str = 'txHash') -> str:
    if not isinstance(value, str) or not TX_HASH_PATTERN.match(value):
        raise ValidationError(f'{field} must be a 0x-prefixed 32-byte hex hash')
    return value.lower()


def require_amount(value: Any, field: str = 'amount') -> str:
    """Validate a non-negative integer amount given as a decimal string."""
    if not isinstance(value, str) or not AMOUNT_PATTERN.match(value):
        raise ValidationError(f'{field} must be a decimal string of digits')
    # Canonical form without leading zeros
    return str(int(value))


def require_text(value: Any, field: str, min_length: int = 1, max_length: Optional[int] = None) -> str:
    if not isinstance(value, str):
        raise ValidationError(f'{field} is required')
    text = value.strip()
    if len(text) < min_length:
        raise ValidationError(f'{field} must be at least {min_length} characters')
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f'{field} must be at most {max_length} characters')
    return text


def optional_text(value: Any, field: str, max_length: int) -> Optional[str]:
    if value is None:
        return None
    return require_text(value, field, min_length=0, max_length=max_length)


def require_int(value: Any, field: str, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{field} must be an integer')
    if minimum is not None and value < minimum:
        raise ValidationError(f'{field} must be >= {minimum}')
    if maximum is not None and value > maximum:
        raise ValidationError(f'{field} must be <= {maximum}')
    return value


def require_email(value: Any, field: str = 'email') -> str:
    if not isinstance(value, str) or not EMAIL_PATTERN.match(value):
        raise ValidationError(f'{field} is not a valid email address')
    return value


def require_url(value: Any, field: str) -> str:
    if not isinstance(value, str) or not URL_PATTERN.match(value):
        raise ValidationError(f'{field} must be an http(s) URL')
    return value


def parse_datetime(value: Any, field: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            # fromisoformat() only accepts a trailing 'Z' from 3.11 on
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f'{field} must be an ISO-8601 datetime')
    else:
        raise ValidationError(f'{field} must be an ISO-8601 datetime')
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def require_datetime(value: Any, field: str) -> str:
    """Validate an ISO-8601 timestamp and return its normalized UTC form."""
    return parse_datetime(value, field).isoformat()
