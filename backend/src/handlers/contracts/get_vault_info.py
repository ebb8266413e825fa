from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    GET /contracts/vault/{address}/info
    """
    return {'info': runtime.vault.get_project_info(get_path_param(event, 'address'))}
