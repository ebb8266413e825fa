from shared.runtime import build_runtime
from shared.users import get_balance
from shared.utils import api_handler

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Freelancer balance over approved and paid KPIs.
    GET /users/me/balance
    """
    return {'balance': get_balance(runtime.store, identity)}
