from shared.runtime import build_runtime
from shared.users import get_portfolio
from shared.utils import api_handler

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Completed (paid) work of the caller.
    GET /users/me/portfolio
    """
    return get_portfolio(runtime.store, identity)
