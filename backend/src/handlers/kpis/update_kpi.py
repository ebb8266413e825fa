from shared.kpi_workflow import update_kpi
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    PUT /projects/kpis/{kpiId}
    """
    body = parse_body(event)
    kpi = update_kpi(
        runtime.store,
        identity,
        get_path_param(event, 'kpiId'),
        description=body.get('description'),
        deadline=body.get('deadline')
    )
    return {'kpi': kpi}
