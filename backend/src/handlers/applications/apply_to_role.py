from shared.applications import apply_to_role
from shared.errors import ValidationError
from shared.runtime import build_runtime
from shared.utils import api_handler, get_query_param, parse_body

runtime = build_runtime()


@api_handler(runtime, status_code=201)
def handler(event, identity):
    """
    Apply to an open role.
    POST /applications?roleId={roleId}
    """
    body = parse_body(event)
    role_id = get_query_param(event, 'roleId') or body.get('roleId')
    if not role_id:
        raise ValidationError('roleId query parameter required')

    return {'application': apply_to_role(runtime.store, identity, role_id, body.get('coverLetter'))}
