from shared.projects import list_roles
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    GET /projects/{id}/roles
    """
    return {'roles': list_roles(runtime.store, get_path_param(event, 'id'))}
