from shared.kpi_workflow import list_my_pending_kpis
from shared.runtime import build_runtime
from shared.utils import api_handler

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    GET /kpis/my/pending
    """
    return {'kpis': list_my_pending_kpis(runtime.store, identity)}
