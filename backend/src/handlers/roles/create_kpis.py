from shared.projects import create_kpis
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime, status_code=201)
def handler(event, identity):
    """
    Create all KPIs of a role at once.
    POST /projects/{id}/roles/{roleId}/kpis
    """
    body = parse_body(event)
    kpis = create_kpis(
        runtime.store,
        identity,
        get_path_param(event, 'id'),
        get_path_param(event, 'roleId'),
        body.get('kpis')
    )
    return {'kpis': kpis}
