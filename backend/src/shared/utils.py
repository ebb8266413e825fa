"""
Common utility functions for Lambda handlers.
"""
import functools
import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict

from .auth import authenticate
from .errors import MarketplaceError, ValidationError
from .logging import logger, log_event


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal types from DynamoDB."""

    def default(self, o):
        if isinstance(o, Decimal):
            # Amounts are stored as strings; numbers here are counters and epochs
            if o % 1 == 0:
                return int(o)
            return str(o)
        return super().default(o)


def format_response(
    status_code: int,
    body: Any,
    headers: Dict[str, str] = None
) -> Dict[str, Any]:
    """
    Format a standard API Gateway response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include

    Returns:
        API Gateway response dict
    """
    default_headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Headers': 'Content-Type,Authorization',
        'Access-Control-Allow-Credentials': True,
        'Content-Type': 'application/json'
    }

    if headers:
        default_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': default_headers,
        'body': json.dumps(body, cls=DecimalEncoder)
    }


def parse_body(event: dict) -> dict:
    """
    Parse the JSON body of an API Gateway event.

    Raises:
        ValidationError: if the body is not a JSON object
    """
    body = event.get('body')
    if body is None or body == '':
        return {}
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            raise ValidationError('Invalid JSON')
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object')
    return body


def get_path_param(event: dict, param_name: str) -> str:
    """Extract path parameter from event."""
    try:
        return event['pathParameters'][param_name]
    except (KeyError, TypeError):
        return None


def get_query_param(event: dict, param_name: str, default: str = None) -> str:
    """Extract query string parameter from event."""
    params = event.get('queryStringParameters') or {}
    return params.get(param_name, default)


def get_int_query_param(event: dict, param_name: str, default: int) -> int:
    value = get_query_param(event, param_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f'{param_name} must be an integer')


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def api_handler(runtime, status_code: int = 200, authenticated: bool = True) -> Callable:
    """
    Wrap an operation as an API Gateway Lambda handler.

    The wrapped function receives (event, identity) where identity is the
    AuthContext resolved from the bearer token, or None for public routes.
    Marketplace errors become structured failure responses; anything else
    is logged and answered with a 500.
    """
    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def handler(event, context):
            log_event(event)
            try:
                identity = authenticate(event, runtime.sessions) if authenticated else None
                result = fn(event, identity)
                return format_response(status_code, result)
            except MarketplaceError as e:
                logger.info(f"{fn.__module__} failed: {e.code} {e.message}")
                return format_response(e.status_code, e.to_dict())
            except Exception as e:
                logger.exception(f"Unhandled error in {fn.__module__}: {e}")
                return format_response(500, {'error': 'Internal Server Error', 'code': 'INTERNAL_ERROR'})
        return handler
    return decorator
