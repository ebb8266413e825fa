from shared.runtime import build_runtime
from shared.users import get_project_balances
from shared.utils import api_handler

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Deposited, spent and remaining amounts of the caller's projects.
    GET /users/me/project-balances
    """
    return {'projects': get_project_balances(runtime.store, runtime.vault, identity)}
