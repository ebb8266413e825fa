from shared.kpi_workflow import approve_kpi
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    POST /kpis/{id}/approve
    """
    body = parse_body(event)
    return {'kpi': approve_kpi(runtime.store, identity, get_path_param(event, 'id'), body.get('comment'))}
