from shared.projects import create_project
from shared.runtime import build_runtime
from shared.utils import api_handler, parse_body

runtime = build_runtime()


@api_handler(runtime, status_code=201)
def handler(event, identity):
    """
    Create a draft project owned by the caller.
    POST /projects
    """
    return {'project': create_project(runtime.store, identity, parse_body(event))}
