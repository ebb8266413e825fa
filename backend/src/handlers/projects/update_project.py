from shared.projects import update_project
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    PUT /projects/{id}
    """
    project = update_project(runtime.store, identity, get_path_param(event, 'id'), parse_body(event))
    return {'project': project}
