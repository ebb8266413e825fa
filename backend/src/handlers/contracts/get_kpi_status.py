from shared.errors import ValidationError
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    On-chain completion status of one KPI slot in a vault.
    GET /contracts/vault/{address}/kpi/{index}
    """
    index = get_path_param(event, 'index')
    if index is None or not index.isdigit():
        raise ValidationError('index must be a non-negative integer')

    return {'status': runtime.vault.get_kpi_status(get_path_param(event, 'address'), int(index))}
