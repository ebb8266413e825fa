from shared.applications import accept_application
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Accept an application, creating the assignment.
    POST /applications/{id}/accept
    """
    return {'assignment': accept_application(runtime.store, identity, get_path_param(event, 'id'))}
