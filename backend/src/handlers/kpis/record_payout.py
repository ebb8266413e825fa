from shared.kpi_workflow import record_payout
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Record the vault payout tx of a KPI and mark it paid.
    POST /kpis/{id}/payout
    """
    body = parse_body(event)
    kpi = record_payout(
        runtime.store,
        identity,
        get_path_param(event, 'id'),
        body.get('payoutTxHash'),
        body.get('vaultBalanceAtEnd'),
        yield_earned=body.get('yieldEarned', '0'),
        penalty_amount=body.get('penaltyAmount', '0')
    )
    return {'kpi': kpi}
