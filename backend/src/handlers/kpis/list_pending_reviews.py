from shared.kpi_workflow import list_pending_reviews
from shared.runtime import build_runtime
from shared.utils import api_handler

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Submitted KPIs waiting for the caller's review.
    GET /kpis/pending-reviews
    """
    return {'kpis': list_pending_reviews(runtime.store, identity)}
