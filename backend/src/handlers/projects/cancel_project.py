from shared.projects import cancel_project
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Cancel a project; returns the per-role paid/approved/pending breakdown.
    POST /projects/{id}/cancel
    """
    return cancel_project(runtime.store, identity, get_path_param(event, 'id'))
