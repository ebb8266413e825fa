"""
User profiles, freelancer work history and balance views.
"""
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .errors import NotFound, ValidationError
from .ledger import earnings_summary, format_amount, freelancer_balance, project_balance, sum_amounts
from .models import AuthContext, KpiStatus
from .utils import utc_now
from .validation import optional_text, parse_datetime, require_address, require_email, require_url

PUBLIC_FIELDS = ('address', 'bio', 'githubUrl', 'linkedinUrl', 'createdAt')
PRIVATE_FIELDS = ('nonce', 'nonceTimestamp')
DATE_ONLY_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def _without_challenge(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k not in PRIVATE_FIELDS}


def get_profile(store, identity: AuthContext) -> Dict[str, Any]:
    user = store.get_user(identity.address)
    if not user:
        raise NotFound('User not found')
    return _without_challenge(user)


def update_profile(store, identity: AuthContext, data: Dict[str, Any]) -> Dict[str, Any]:
    """Update contact details and bio of the caller."""
    fields = {}
    if data.get('email') is not None:
        fields['email'] = require_email(data['email'])
    for name in ('githubUrl', 'linkedinUrl'):
        if data.get(name) is not None:
            fields[name] = require_url(data[name], name)
    if data.get('bio') is not None:
        fields['bio'] = optional_text(data['bio'], 'bio', 500)
    if not fields:
        raise ValidationError('Nothing to update')

    fields['updatedAt'] = utc_now()
    updated = store.update_user(identity.address, fields)
    if updated is None:
        raise NotFound('User not found')
    return _without_challenge(updated)


def get_public_profile(store, address: str) -> Dict[str, Any]:
    address = require_address(address)
    user = store.get_user(address)
    if not user:
        raise NotFound('User not found')

    return {
        'user': {field: user.get(field) for field in PUBLIC_FIELDS},
        'stats': {
            'projectsOwned': len(store.list_projects_by_owner(address)),
            'applicationsSubmitted': len(store.list_applications_by_freelancer(address)),
            'assignments': len(store.list_assignments_by_freelancer(address)),
        },
    }


def list_my_assignments(store, identity: AuthContext) -> List[Dict[str, Any]]:
    """Caller's assignments with role and project, most recent first."""
    result = []
    for assignment in store.list_assignments_by_freelancer(identity.address):
        role = store.get_role(assignment['projectRoleId'])
        project = store.get_project(role['projectId']) if role else None
        result.append(dict(assignment, projectRole=role, project=project))
    return sorted(result, key=lambda a: a.get('assignedAt', ''), reverse=True)


def _freelancer_kpis(store, address: str) -> List[Dict[str, Any]]:
    kpis = []
    for assignment in store.list_assignments_by_freelancer(address):
        kpis.extend(store.list_kpis_by_assignment(assignment['assignmentId']))
    return kpis


def get_portfolio(store, identity: AuthContext) -> Dict[str, Any]:
    """Paid KPIs of the caller (completed work)."""
    paid = [k for k in _freelancer_kpis(store, identity.address) if k.get('status') == KpiStatus.PAID]

    entries = []
    roles = {}
    for kpi in paid:
        role_id = kpi['projectRoleId']
        if role_id not in roles:
            role = store.get_role(role_id)
            roles[role_id] = (role, store.get_project(role['projectId']) if role else None)
        role, project = roles[role_id]
        entries.append({
            'projectId': project.get('projectId') if project else None,
            'projectTitle': project.get('title') if project else None,
            'role': role.get('name') if role else None,
            'kpiNumber': kpi.get('kpiNumber'),
            'amount': kpi.get('amount'),
        })

    return {
        'completedKpis': len(paid),
        'totalEarned': format_amount(sum_amounts(k.get('amount') for k in paid)),
        'projects': entries,
    }


def get_balance(store, identity: AuthContext) -> Dict[str, Any]:
    return freelancer_balance(_freelancer_kpis(store, identity.address))


def get_project_balances(store, vault, identity: AuthContext) -> List[Dict[str, Any]]:
    """
    Balance view of every project owned by the caller.

    Projects with a linked vault also report the vault's on-chain balance;
    that read degrades to "0" when the chain is unreachable.
    """
    balances = []
    for project in store.list_projects_by_owner(identity.address):
        kpis = []
        for role in store.list_roles(project['projectId']):
            kpis.extend(store.list_kpis_by_role(role['roleId']))

        balance = project_balance(project, kpis)
        balance['title'] = project.get('title')
        balance['vaultAddress'] = project.get('vaultAddress')
        balance['vaultBalance'] = vault.get_balance(project['vaultAddress']) if project.get('vaultAddress') else '0'
        balances.append(balance)
    return balances


def _period_end(value: str) -> datetime:
    end_at = parse_datetime(value, 'to')
    if isinstance(value, str) and DATE_ONLY_PATTERN.match(value):
        end_at += timedelta(days=1) - timedelta(microseconds=1)
    return end_at


def get_earnings(store, identity: AuthContext, start: Optional[str] = None, end: Optional[str] = None) -> Dict[str, Any]:
    """
    Yield and penalty adjusted earnings, optionally within [start, end].

    A date-only `end` (YYYY-MM-DD) includes the whole of that day.
    """
    start_at = parse_datetime(start, 'from') if start else None
    end_at = _period_end(end) if end else None
    if start_at and end_at and end_at < start_at:
        raise ValidationError('to must not be before from')

    return earnings_summary(_freelancer_kpis(store, identity.address), start_at, end_at)
