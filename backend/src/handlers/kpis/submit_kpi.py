from shared.kpi_workflow import submit_kpi
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Assigned freelancer submits work for a KPI.
    POST /kpis/{id}/submit
    """
    body = parse_body(event)
    kpi = submit_kpi(runtime.store, identity, get_path_param(event, 'id'), body.get('submissionData'))
    return {'kpi': kpi}
