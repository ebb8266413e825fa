from shared.runtime import build_runtime
from shared.utils import api_handler, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Calldata for the frontend wallet to deposit into a vault.
    POST /contracts/calldata/deposit
    """
    body = parse_body(event)
    return runtime.vault.build_deposit_call(body.get('vaultAddress'), body.get('amount'))
