from shared.projects import delete_role
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Delete a role that has no assignments.
    DELETE /projects/{id}/roles/{roleId}
    """
    return delete_role(runtime.store, identity, get_path_param(event, 'id'), get_path_param(event, 'roleId'))
