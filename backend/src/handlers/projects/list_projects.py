from shared.projects import DEFAULT_PAGE_SIZE, list_projects
from shared.runtime import build_runtime
from shared.utils import api_handler, get_int_query_param, get_query_param

runtime = build_runtime()


@api_handler(runtime, authenticated=False)
def handler(event, identity):
    """
    Browse projects, newest first.
    GET /projects?search=&status=&limit=&offset=
    """
    projects = list_projects(
        runtime.store,
        search=get_query_param(event, 'search'),
        status=get_query_param(event, 'status'),
        limit=get_int_query_param(event, 'limit', DEFAULT_PAGE_SIZE),
        offset=get_int_query_param(event, 'offset', 0)
    )
    return {'projects': projects}
