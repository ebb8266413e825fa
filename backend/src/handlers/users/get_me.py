from shared.runtime import build_runtime
from shared.users import get_profile
from shared.utils import api_handler

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Get the caller's profile.
    GET /users/me
    """
    return {'user': get_profile(runtime.store, identity)}
