from shared.projects import update_role
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    PUT /projects/{id}/roles/{roleId}
    """
    role = update_role(
        runtime.store,
        identity,
        get_path_param(event, 'id'),
        get_path_param(event, 'roleId'),
        parse_body(event)
    )
    return {'role': role}
