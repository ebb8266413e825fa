from shared.projects import get_project
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime, authenticated=False)
def handler(event, identity):
    """
    Project detail with roles, pending applications, assignments and KPIs.
    GET /projects/{id}
    """
    return {'project': get_project(runtime.store, get_path_param(event, 'id'))}
