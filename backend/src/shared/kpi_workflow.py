"""
KPI (milestone) state machine.

    pending ──submit──> submitted ──approve──> approved ──confirm──> paid
                             └──────reject───> rejected (terminal)

submit and confirm belong to the assigned freelancer, approve/reject and the
on-chain bookkeeping (record_deposit, record_payout) to the project owner.
Every operation reloads the KPI with its role, project and assignment and
checks, in this order: existence (NotFound), actor (NotAuthorized), current
status (InvalidState). Status writes are conditional on the status that was
checked, so a concurrent transition surfaces as InvalidState.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import InvalidState, NotAuthorized, NotFound, ValidationError
from .ledger import format_amount, freelancer_total, parse_amount
from .logging import logger
from .models import AssignmentStatus, AuthContext, KpiStatus, RoleStatus, TransactionType
from .transactions import record_transaction
from .utils import utc_now
from .validation import (
    optional_text,
    require_amount,
    require_datetime,
    require_text,
    require_tx_hash,
    require_url,
)

SUBMISSION_MIN_LENGTH = 10
SUBMISSION_MAX_LENGTH = 5000
MAX_SUBMISSION_LINKS = 20
COMMENT_MIN_LENGTH = 10
COMMENT_MAX_LENGTH = 1000
DEPOSIT_ATTEMPTS = 5


@dataclass
class KpiContext:
    kpi: Dict[str, Any]
    role: Dict[str, Any]
    project: Dict[str, Any]
    assignment: Optional[Dict[str, Any]]

    @property
    def kpi_id(self) -> str:
        return self.kpi['kpiId']


def load_kpi_context(store, kpi_id: str) -> KpiContext:
    """Fetch a KPI together with its role, project and (if linked) assignment."""
    kpi = store.get_kpi(kpi_id) if kpi_id else None
    if not kpi:
        raise NotFound('KPI not found')

    role = store.get_role(kpi['projectRoleId'])
    project = store.get_project(role['projectId']) if role else None
    if not role or not project:
        raise NotFound('KPI not found')

    assignment = None
    if kpi.get('assignmentId'):
        assignment = store.get_assignment(kpi['assignmentId'])

    return KpiContext(kpi=kpi, role=role, project=project, assignment=assignment)


def _require_owner(ctx: KpiContext, identity: AuthContext) -> None:
    if ctx.project.get('ownerAddress') != identity.address:
        raise NotAuthorized('Only the project owner can do this')


def _require_assignee(ctx: KpiContext, identity: AuthContext) -> None:
    if not ctx.assignment or ctx.assignment.get('freelancerAddress') != identity.address:
        raise NotAuthorized('Only the assigned freelancer can do this')


def _require_status(ctx: KpiContext, expected: str, message: str) -> None:
    if ctx.kpi.get('status') != expected:
        raise InvalidState(message, status=ctx.kpi.get('status'))


def _transition(store, ctx: KpiContext, expected: Optional[str], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Write `fields`, only if the KPI is still in `expected` status."""
    fields = dict(fields, updatedAt=utc_now())
    updated = store.update_kpi(ctx.kpi_id, fields, expected_status=expected)
    if updated is None:
        raise InvalidState('KPI status changed concurrently')
    if 'status' in fields:
        logger.info(f"KPI {ctx.kpi_id}: {ctx.kpi.get('status')} -> {fields['status']}")
    return updated


def _complete_if_all_paid(store, ctx: KpiContext) -> None:
    """Close the assignment and role once every KPI of the role is paid."""
    kpis = store.list_kpis_by_role(ctx.role['roleId'])
    if not kpis or any(k.get('status') != KpiStatus.PAID for k in kpis):
        return

    if ctx.assignment:
        store.set_assignment_status(
            ctx.assignment['assignmentId'], AssignmentStatus.ACTIVE, AssignmentStatus.COMPLETED
        )
    if store.update_role(ctx.role['roleId'], {'status': RoleStatus.COMPLETED}, expected_status=RoleStatus.ASSIGNED):
        logger.info(f"Role {ctx.role['roleId']} completed: all KPIs paid")


def normalize_submission(payload: Any) -> str:
    """
    Validate submission data.

    Accepts free text, or a structured {"description": ..., "links": [...]}
    form which is stored as JSON text.
    """
    if isinstance(payload, str):
        return require_text(payload, 'submissionData', SUBMISSION_MIN_LENGTH, SUBMISSION_MAX_LENGTH)

    if isinstance(payload, dict):
        description = require_text(
            payload.get('description'), 'description', SUBMISSION_MIN_LENGTH, SUBMISSION_MAX_LENGTH
        )
        links = payload.get('links') or []
        if not isinstance(links, list) or len(links) > MAX_SUBMISSION_LINKS:
            raise ValidationError(f'links must be a list of at most {MAX_SUBMISSION_LINKS} URLs')
        links = [require_url(link, 'links') for link in links]
        return json.dumps({'description': description, 'links': links})

    raise ValidationError('submissionData is required')


def submit_kpi(store, identity: AuthContext, kpi_id: str, submission: Any) -> Dict[str, Any]:
    """Assigned freelancer hands in work for a pending KPI."""
    submission_data = normalize_submission(submission)

    ctx = load_kpi_context(store, kpi_id)
    _require_assignee(ctx, identity)
    _require_status(ctx, KpiStatus.PENDING, 'KPI already submitted')
    if ctx.assignment.get('status') != AssignmentStatus.ACTIVE:
        raise InvalidState('Assignment is no longer active')

    now = utc_now()
    return _transition(store, ctx, KpiStatus.PENDING, {
        'status': KpiStatus.SUBMITTED,
        'submissionData': submission_data,
        'submittedAt': now,
    })


def approve_kpi(store, identity: AuthContext, kpi_id: str, comment: Optional[str] = None) -> Dict[str, Any]:
    """Project owner accepts a submitted KPI."""
    comment = optional_text(comment, 'comment', COMMENT_MAX_LENGTH) or None

    ctx = load_kpi_context(store, kpi_id)
    _require_owner(ctx, identity)
    _require_status(ctx, KpiStatus.SUBMITTED, 'KPI not submitted')

    return _transition(store, ctx, KpiStatus.SUBMITTED, {
        'status': KpiStatus.APPROVED,
        'reviewComment': comment,
        'reviewedAt': utc_now(),
    })


def reject_kpi(store, identity: AuthContext, kpi_id: str, comment: str) -> Dict[str, Any]:
    """
    Project owner rejects a submitted KPI.

    Rejection is final: there is no path from rejected back to pending.
    """
    comment = require_text(comment, 'comment', COMMENT_MIN_LENGTH, COMMENT_MAX_LENGTH)

    ctx = load_kpi_context(store, kpi_id)
    _require_owner(ctx, identity)
    _require_status(ctx, KpiStatus.SUBMITTED, 'KPI not submitted')

    return _transition(store, ctx, KpiStatus.SUBMITTED, {
        'status': KpiStatus.REJECTED,
        'reviewComment': comment,
        'reviewedAt': utc_now(),
    })


def confirm_kpi(store, identity: AuthContext, kpi_id: str) -> Dict[str, Any]:
    """Assigned freelancer confirms an approved KPI, releasing it for payout."""
    ctx = load_kpi_context(store, kpi_id)
    _require_assignee(ctx, identity)
    _require_status(ctx, KpiStatus.APPROVED, 'KPI not approved')

    updated = _transition(store, ctx, KpiStatus.APPROVED, {'status': KpiStatus.PAID})
    _complete_if_all_paid(store, ctx)
    return updated


def _add_to_deposited(store, project_id: str, amount: str) -> str:
    """Raise the project's totalDeposited by `amount` (compare-and-set, retried)."""
    for _ in range(DEPOSIT_ATTEMPTS):
        project = store.get_project(project_id)
        current = project.get('totalDeposited') or '0'
        total = format_amount(parse_amount(current) + parse_amount(amount))
        if store.set_total_deposited(project_id, current, total, utc_now()):
            logger.info(f"Project {project_id} totalDeposited {current} -> {total}")
            return total
    logger.error(f"Could not add deposit of {amount} to project {project_id}")
    raise InvalidState('Project deposit total changed concurrently')


def record_deposit(
    store,
    identity: AuthContext,
    kpi_id: str,
    deposit_tx_hash: str,
    vault_balance_at_start: str
) -> Dict[str, Any]:
    """
    Store the vault deposit made for a KPI and add the KPI amount to the
    project's totalDeposited. Does not change the KPI status.

    Raises:
        InvalidState: a deposit was already recorded for the KPI
    """
    deposit_tx_hash = require_tx_hash(deposit_tx_hash, 'depositTxHash')
    vault_balance_at_start = require_amount(vault_balance_at_start, 'vaultBalanceAtStart')

    ctx = load_kpi_context(store, kpi_id)
    _require_owner(ctx, identity)
    if ctx.kpi.get('depositTxHash'):
        raise InvalidState('Deposit already recorded for this KPI')

    # Claiming the KPI first means a deposit is counted at most once
    updated = store.update_kpi(ctx.kpi_id, {
        'depositTxHash': deposit_tx_hash,
        'vaultBalanceAtStart': vault_balance_at_start,
        'updatedAt': utc_now(),
    }, absent='depositTxHash')
    if updated is None:
        raise InvalidState('Deposit already recorded for this KPI')

    amount = ctx.kpi.get('amount') or '0'
    _add_to_deposited(store, ctx.project['projectId'], amount)
    record_transaction(
        store,
        TransactionType.DEPOSIT,
        deposit_tx_hash,
        amount,
        project_id=ctx.project['projectId'],
        kpi_id=ctx.kpi_id,
        assignment_id=ctx.kpi.get('assignmentId'),
    )
    return updated


def record_payout(
    store,
    identity: AuthContext,
    kpi_id: str,
    payout_tx_hash: str,
    vault_balance_at_end: str,
    yield_earned: str = '0',
    penalty_amount: str = '0'
) -> Dict[str, Any]:
    """Store the vault payout of a KPI and mark it paid, whatever its status was."""
    payout_tx_hash = require_tx_hash(payout_tx_hash, 'payoutTxHash')
    vault_balance_at_end = require_amount(vault_balance_at_end, 'vaultBalanceAtEnd')
    yield_earned = require_amount(yield_earned, 'yieldEarned')
    penalty_amount = require_amount(penalty_amount, 'penaltyAmount')

    ctx = load_kpi_context(store, kpi_id)
    _require_owner(ctx, identity)

    updated = _transition(store, ctx, None, {
        'status': KpiStatus.PAID,
        'payoutTxHash': payout_tx_hash,
        'vaultBalanceAtEnd': vault_balance_at_end,
        'yieldEarned': yield_earned,
        'penaltyAmount': penalty_amount,
    })

    common = {
        'project_id': ctx.project['projectId'],
        'kpi_id': ctx.kpi_id,
        'assignment_id': ctx.kpi.get('assignmentId'),
    }
    payout = max(freelancer_total(updated), 0)
    record_transaction(store, TransactionType.PAYMENT, payout_tx_hash, format_amount(payout), **common)
    if int(penalty_amount) > 0:
        record_transaction(store, TransactionType.PENALTY, payout_tx_hash, penalty_amount, **common)

    _complete_if_all_paid(store, ctx)
    return updated


def update_kpi(
    store,
    identity: AuthContext,
    kpi_id: str,
    description: Optional[str] = None,
    deadline: Optional[str] = None
) -> Dict[str, Any]:
    """Project owner edits a KPI that has not been submitted yet."""
    fields = {}
    if description is not None:
        fields['description'] = require_text(description, 'description', 5, 500)
    if deadline is not None:
        fields['deadline'] = require_datetime(deadline, 'deadline')
    if not fields:
        raise ValidationError('Nothing to update')

    ctx = load_kpi_context(store, kpi_id)
    _require_owner(ctx, identity)
    _require_status(ctx, KpiStatus.PENDING, 'Cannot update submitted KPI')

    return _transition(store, ctx, KpiStatus.PENDING, fields)


def list_my_pending_kpis(store, identity: AuthContext) -> List[Dict[str, Any]]:
    """Pending KPIs on the caller's assignments (freelancer view)."""
    kpis = []
    for assignment in store.list_assignments_by_freelancer(identity.address):
        kpis.extend(
            k for k in store.list_kpis_by_assignment(assignment['assignmentId'])
            if k.get('status') == KpiStatus.PENDING
        )
    return sorted(kpis, key=lambda k: (k.get('deadline', ''), int(k.get('kpiNumber', 0))))


def list_pending_reviews(store, identity: AuthContext) -> List[Dict[str, Any]]:
    """Submitted KPIs across the caller's projects (owner view)."""
    kpis = []
    for project in store.list_projects_by_owner(identity.address):
        for role in store.list_roles(project['projectId']):
            kpis.extend(
                k for k in store.list_kpis_by_role(role['roleId'])
                if k.get('status') == KpiStatus.SUBMITTED
            )
    return sorted(kpis, key=lambda k: k.get('submittedAt', ''))
