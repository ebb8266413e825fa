from shared.applications import list_role_applications
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Applicants for a role (project owner only).
    GET /applications/role/{roleId}
    """
    return {'applicants': list_role_applications(runtime.store, identity, get_path_param(event, 'roleId'))}
