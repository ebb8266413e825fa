from shared.kpi_workflow import record_deposit
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Record the vault deposit tx of a KPI.
    POST /kpis/{id}/deposit
    """
    body = parse_body(event)
    kpi = record_deposit(
        runtime.store,
        identity,
        get_path_param(event, 'id'),
        body.get('depositTxHash'),
        body.get('vaultBalanceAtStart')
    )
    return {'kpi': kpi}
