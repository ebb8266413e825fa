from shared.projects import create_role
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime, status_code=201)
def handler(event, identity):
    """
    POST /projects/{id}/roles
    """
    role = create_role(runtime.store, identity, get_path_param(event, 'id'), parse_body(event))
    return {'role': role}
