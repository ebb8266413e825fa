from shared.nonces import login
from shared.runtime import build_runtime
from shared.utils import api_handler, parse_body

runtime = build_runtime()


@api_handler(runtime, authenticated=False)
def handler(event, identity):
    """
    Exchange a signed challenge for a session token.
    POST /auth/wallet/verify
    """
    body = parse_body(event)
    return login(runtime.store, runtime.sessions, body.get('address'), body.get('signature'))
