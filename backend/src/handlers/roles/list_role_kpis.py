from shared.projects import list_role_kpis
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    GET /projects/{id}/roles/{roleId}/kpis
    """
    kpis = list_role_kpis(runtime.store, identity, get_path_param(event, 'id'), get_path_param(event, 'roleId'))
    return {'kpis': kpis}
