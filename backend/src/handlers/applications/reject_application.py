from shared.applications import reject_application
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    POST /applications/{id}/reject
    """
    return reject_application(runtime.store, identity, get_path_param(event, 'id'))
