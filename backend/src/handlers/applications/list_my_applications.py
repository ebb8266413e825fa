from shared.applications import list_my_applications
from shared.runtime import build_runtime
from shared.utils import api_handler

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    GET /applications/my
    """
    return {'applications': list_my_applications(runtime.store, identity)}
