from shared.runtime import build_runtime
from shared.utils import api_handler, get_int_query_param, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Deposited, KpiApproved and ProjectCancelled logs of a vault.
    GET /contracts/vault/{address}/events?fromBlock=
    """
    events = runtime.vault.get_events(
        get_path_param(event, 'address'),
        from_block=get_int_query_param(event, 'fromBlock', 0)
    )
    return {'events': events}
