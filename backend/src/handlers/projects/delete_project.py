from shared.projects import delete_project
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Delete a draft project with its roles, applications and KPIs.
    DELETE /projects/{id}
    """
    return delete_project(runtime.store, identity, get_path_param(event, 'id'))
