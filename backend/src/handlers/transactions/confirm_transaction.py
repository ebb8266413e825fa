from shared.errors import ValidationError
from shared.runtime import build_runtime
from shared.transactions import confirm_transaction
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Mark a recorded chain transaction confirmed or failed.
    POST /transactions/{id}/confirm  {"succeeded": true}
    """
    body = parse_body(event)
    succeeded = body.get('succeeded', True)
    if not isinstance(succeeded, bool):
        raise ValidationError('succeeded must be a boolean')

    return {'transaction': confirm_transaction(runtime.store, identity, get_path_param(event, 'id'), succeeded)}
