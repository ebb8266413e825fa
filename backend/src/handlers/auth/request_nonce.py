from shared.nonces import issue_nonce
from shared.runtime import build_runtime
from shared.utils import api_handler, parse_body

runtime = build_runtime()


@api_handler(runtime, authenticated=False)
def handler(event, identity):
    """
    Issue a sign-in challenge for a wallet.
    POST /auth/wallet/nonce
    """
    body = parse_body(event)
    challenge = issue_nonce(runtime.store, body.get('address'))

    return {
        'nonce': challenge.nonce,
        'message': challenge.message,
        'timestamp': challenge.timestamp
    }
