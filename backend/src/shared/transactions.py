"""
Append-only audit trail of on-chain money movements.

Records are written when a project owner reports a deposit or payout tx hash.
Balances are derived from KPI state, not from this table.
"""
from typing import Any, Dict, List, Optional

from .errors import InvalidState, NotAuthorized, NotFound, ValidationError
from .logging import logger
from .models import AuthContext, TransactionStatus, TransactionType
from .utils import new_id, utc_now
from .validation import require_amount, require_tx_hash


def record_transaction(
    store,
    tx_type: str,
    tx_hash: str,
    amount: str,
    project_id: Optional[str] = None,
    kpi_id: Optional[str] = None,
    assignment_id: Optional[str] = None
) -> Dict[str, Any]:
    """Append a pending audit record for a chain transaction."""
    if tx_type not in TransactionType.ALL:
        raise ValidationError(f'Unknown transaction type: {tx_type}')

    item = {
        'transactionId': new_id(),
        'type': tx_type,
        'txHash': require_tx_hash(tx_hash),
        'amount': require_amount(amount),
        'projectId': project_id,
        'kpiId': kpi_id,
        'assignmentId': assignment_id,
        'status': TransactionStatus.PENDING,
        'createdAt': utc_now(),
    }
    store.put_transaction(item)
    logger.info(f"Recorded {tx_type} transaction {item['transactionId']} ({tx_hash}) amount={item['amount']}")
    return item


def _owned_transaction(store, identity: AuthContext, transaction_id: str) -> Dict[str, Any]:
    transaction = store.get_transaction(transaction_id)
    if not transaction:
        raise NotFound('Transaction not found')

    project = store.get_project(transaction['projectId']) if transaction.get('projectId') else None
    if not project or project.get('ownerAddress') != identity.address:
        raise NotAuthorized('Not authorized')
    return transaction


def confirm_transaction(store, identity: AuthContext, transaction_id: str, succeeded: bool = True) -> Dict[str, Any]:
    """Mark a pending record confirmed (or failed) once the chain settled it."""
    _owned_transaction(store, identity, transaction_id)

    status = TransactionStatus.CONFIRMED if succeeded else TransactionStatus.FAILED
    updated = store.update_transaction(
        transaction_id,
        {'status': status, 'confirmedAt': utc_now()},
        expected_status=TransactionStatus.PENDING
    )
    if updated is None:
        raise InvalidState('Transaction already settled')
    return updated


def list_project_transactions(store, identity: AuthContext, project_id: str) -> List[Dict[str, Any]]:
    project = store.get_project(project_id)
    if not project:
        raise NotFound('Project not found')
    if project.get('ownerAddress') != identity.address:
        raise NotAuthorized('Not authorized')

    records = store.list_transactions_by_project(project_id)
    return sorted(records, key=lambda t: t.get('createdAt', ''), reverse=True)
