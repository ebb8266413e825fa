from shared.projects import get_cancellation_status
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime, authenticated=False)
def handler(event, identity):
    """
    Whether a project has been cancelled.
    GET /projects/{id}/cancellation-status
    """
    return get_cancellation_status(runtime.store, get_path_param(event, 'id'))
