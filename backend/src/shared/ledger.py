"""
Balance and earnings aggregation over KPIs.

Amounts are decimal strings of integers in the smallest token unit. They are
only ever combined as Python ints, never through float.

Yield earned by a vault while a KPI was running is split three ways:
40% freelancer, 40% project owner, 20% platform (truncating division).
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .errors import ValidationError
from .models import KpiStatus
from .validation import AMOUNT_PATTERN, parse_datetime

FREELANCER_YIELD_PERCENT = 40
OWNER_YIELD_PERCENT = 40
PLATFORM_YIELD_PERCENT = 20


@dataclass(frozen=True)
class YieldSplit:
    freelancer: int
    owner: int
    platform: int


def parse_amount(value: Any) -> int:
    """
    Parse a stored amount.

    Missing values count as zero. Anything other than a string of digits
    (or an int) is rejected; floats are never accepted.
    """
    if value is None or value == '':
        return 0
    if isinstance(value, bool):
        raise ValidationError(f'Invalid amount: {value!r}')
    if isinstance(value, int):
        return value
    if isinstance(value, str) and AMOUNT_PATTERN.match(value):
        return int(value)
    raise ValidationError(f'Invalid amount: {value!r}')


def format_amount(value: int) -> str:
    return str(value)


def sum_amounts(values: Iterable[Any]) -> int:
    return sum((parse_amount(v) for v in values), 0)


def split_yield(yield_earned: Any) -> YieldSplit:
    earned = parse_amount(yield_earned)
    return YieldSplit(
        freelancer=earned * FREELANCER_YIELD_PERCENT // 100,
        owner=earned * OWNER_YIELD_PERCENT // 100,
        platform=earned * PLATFORM_YIELD_PERCENT // 100,
    )


def freelancer_total(kpi: Dict[str, Any]) -> int:
    """Amount paid to the freelancer for one KPI: amount + yield share - penalty."""
    return (
        parse_amount(kpi.get('amount'))
        + split_yield(kpi.get('yieldEarned')).freelancer
        - parse_amount(kpi.get('penaltyAmount'))
    )


def _with_status(kpis: Iterable[Dict[str, Any]], statuses) -> List[Dict[str, Any]]:
    return [k for k in kpis if k.get('status') in statuses]


def filter_by_period(
    kpis: Iterable[Dict[str, Any]],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Keep KPIs whose updatedAt falls within [start, end] (both inclusive)."""
    selected = []
    for kpi in kpis:
        updated_at = kpi.get('updatedAt')
        if start is None and end is None:
            selected.append(kpi)
            continue
        if not updated_at:
            continue
        moment = parse_datetime(updated_at, 'updatedAt')
        if start is not None and moment < start:
            continue
        if end is not None and moment > end:
            continue
        selected.append(kpi)
    return selected


def freelancer_balance(kpis: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Balance view for a freelancer over the KPIs of their assignments."""
    payable = _with_status(kpis, KpiStatus.PAYABLE)
    earned = format_amount(sum_amounts(k.get('amount') for k in payable))
    return {
        'availableBalance': earned,
        'totalEarned': earned,
        'pendingKpis': len(_with_status(kpis, (KpiStatus.SUBMITTED,))),
        'approvedKpis': len(payable),
        'totalKpis': len(kpis),
    }


def earnings_summary(
    kpis: List[Dict[str, Any]],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Yield/penalty-adjusted earnings for a freelancer within a period.

    Args:
        kpis: KPIs of the freelancer's assignments
        start: Inclusive lower bound on updatedAt
        end: Inclusive upper bound on updatedAt

    Returns:
        Totals plus a per-KPI breakdown of paid KPIs
    """
    in_period = filter_by_period(kpis, start, end)
    paid = _with_status(in_period, (KpiStatus.PAID,))

    breakdown = []
    totals = {'amount': 0, 'yieldEarned': 0, 'freelancerYield': 0, 'ownerYield': 0,
              'platformYield': 0, 'penaltyAmount': 0, 'freelancerTotal': 0}
    for kpi in paid:
        split = split_yield(kpi.get('yieldEarned'))
        amount = parse_amount(kpi.get('amount'))
        penalty = parse_amount(kpi.get('penaltyAmount'))
        total = amount + split.freelancer - penalty

        totals['amount'] += amount
        totals['yieldEarned'] += parse_amount(kpi.get('yieldEarned'))
        totals['freelancerYield'] += split.freelancer
        totals['ownerYield'] += split.owner
        totals['platformYield'] += split.platform
        totals['penaltyAmount'] += penalty
        totals['freelancerTotal'] += total

        breakdown.append({
            'kpiId': kpi.get('kpiId'),
            'projectRoleId': kpi.get('projectRoleId'),
            'kpiNumber': kpi.get('kpiNumber'),
            'amount': format_amount(amount),
            'yieldEarned': format_amount(parse_amount(kpi.get('yieldEarned'))),
            'freelancerYield': format_amount(split.freelancer),
            'ownerYield': format_amount(split.owner),
            'platformYield': format_amount(split.platform),
            'penaltyAmount': format_amount(penalty),
            'freelancerTotal': format_amount(total),
            'updatedAt': kpi.get('updatedAt'),
        })

    payable = _with_status(in_period, KpiStatus.PAYABLE)
    return {
        'from': start.isoformat() if start else None,
        'to': end.isoformat() if end else None,
        'totalEarned': format_amount(sum_amounts(k.get('amount') for k in payable)),
        'paidKpis': len(paid),
        'approvedKpis': len(payable),
        'totals': {k: format_amount(v) for k, v in totals.items()},
        'kpis': breakdown,
    }


def project_balance(project: Dict[str, Any], kpis: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Deposited/spent/pending/remaining view of a project's KPIs."""
    paid = _with_status(kpis, (KpiStatus.PAID,))
    approved = _with_status(kpis, (KpiStatus.APPROVED,))

    deposited = parse_amount(project.get('totalDeposited'))
    spent = sum_amounts(k.get('amount') for k in paid)
    yield_earned = sum_amounts(k.get('yieldEarned') for k in paid)
    owner_yield = sum(split_yield(k.get('yieldEarned')).owner for k in paid)
    platform_yield = sum(split_yield(k.get('yieldEarned')).platform for k in paid)

    return {
        'projectId': project.get('projectId'),
        'totalDeposited': format_amount(deposited),
        'spent': format_amount(spent),
        'pending': format_amount(sum_amounts(k.get('amount') for k in approved)),
        'remaining': format_amount(deposited - spent),
        'yieldEarned': format_amount(yield_earned),
        'ownerYield': format_amount(owner_yield),
        'platformYield': format_amount(platform_yield),
    }


def status_breakdown(kpis: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Counts and amount sums of paid, approved and still-open KPIs."""
    paid = _with_status(kpis, (KpiStatus.PAID,))
    approved = _with_status(kpis, (KpiStatus.APPROVED,))
    open_kpis = _with_status(kpis, (KpiStatus.PENDING, KpiStatus.SUBMITTED))
    return {
        'paid': len(paid),
        'approved': len(approved),
        'pending': len(open_kpis),
        'paidAmount': format_amount(sum_amounts(k.get('amount') for k in paid)),
        'approvedAmount': format_amount(sum_amounts(k.get('amount') for k in approved)),
        'pendingAmount': format_amount(sum_amounts(k.get('amount') for k in open_kpis)),
    }
