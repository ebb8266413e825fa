from shared.runtime import build_runtime
from shared.users import get_earnings
from shared.utils import api_handler, get_query_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Yield and penalty adjusted earnings of the caller.
    GET /users/me/earnings?from=<iso>&to=<iso>
    """
    return {
        'earnings': get_earnings(
            runtime.store,
            identity,
            get_query_param(event, 'from'),
            get_query_param(event, 'to')
        )
    }
