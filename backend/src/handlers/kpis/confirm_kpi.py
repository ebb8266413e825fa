from shared.kpi_workflow import confirm_kpi
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Freelancer confirms an approved KPI.
    POST /kpis/{id}/confirm
    """
    return {'kpi': confirm_kpi(runtime.store, identity, get_path_param(event, 'id'))}
