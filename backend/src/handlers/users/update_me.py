from shared.runtime import build_runtime
from shared.users import update_profile
from shared.utils import api_handler, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Update email, GitHub/LinkedIn URLs and bio of the caller.
    PUT /users/me
    """
    return {'user': update_profile(runtime.store, identity, parse_body(event))}
