from shared.projects import get_project_progress
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    KPI completion of a project, per role and overall.
    GET /projects/{id}/progress
    """
    return get_project_progress(runtime.store, identity, get_path_param(event, 'id'))
