from shared.runtime import build_runtime
from shared.users import list_my_assignments
from shared.utils import api_handler

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    GET /users/me/assignments
    """
    return {'assignments': list_my_assignments(runtime.store, identity)}
