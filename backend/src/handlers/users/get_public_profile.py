from shared.runtime import build_runtime
from shared.users import get_public_profile
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Public profile and activity counts of any user.
    GET /users/{address}
    """
    return get_public_profile(runtime.store, get_path_param(event, 'address'))
