"""
Projects, their roles and the KPIs attached to each role.

Projects start as drafts owned by the wallet that created them. Roles carry
the KPI count and the payment per KPI; the KPIs of a role are created once,
all at the same time, with the role's payment copied into each of them.
"""
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidState, NotAuthorized, NotFound, ValidationError
from .ledger import status_breakdown
from .logging import logger
from .models import (
    ApplicationStatus,
    AssignmentStatus,
    AuthContext,
    KpiStatus,
    ProjectStatus,
    RoleStatus,
)
from .utils import new_id, utc_now
from .validation import (
    parse_datetime,
    require_address,
    require_amount,
    require_datetime,
    require_int,
    require_text,
)

MAX_KPIS_PER_ROLE = 52
CREATE_KPIS_ATTEMPTS = 3
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

PROFILE_FIELDS = ('address', 'bio', 'githubUrl', 'linkedinUrl')
ENDED_STATUSES = (ProjectStatus.CANCELLED, ProjectStatus.COMPLETED)


def _kpi_order(kpi: Dict[str, Any]) -> int:
    return int(kpi.get('kpiNumber', 0))


def _profile(store, address: str, fields=PROFILE_FIELDS) -> Dict[str, Any]:
    user = store.get_user(address) or {'address': address}
    return {field: user.get(field) for field in fields}


def _load_project(store, project_id: str) -> Dict[str, Any]:
    project = store.get_project(project_id) if project_id else None
    if not project:
        raise NotFound('Project not found')
    return project


def _owned_project(store, identity: AuthContext, project_id: str) -> Dict[str, Any]:
    project = _load_project(store, project_id)
    if project.get('ownerAddress') != identity.address:
        raise NotAuthorized('Not authorized')
    return project


def _role_in_project(store, project: Dict[str, Any], role_id: str) -> Dict[str, Any]:
    role = store.get_role(role_id) if role_id else None
    if not role or role.get('projectId') != project['projectId']:
        raise NotFound('Role not found')
    return role


def _check_timeline(start: str, end: str) -> None:
    if parse_datetime(end, 'timelineEnd') < parse_datetime(start, 'timelineStart'):
        raise ValidationError('timelineEnd must not be before timelineStart')


# ----------------------------------------------------------------------
# Projects
# ----------------------------------------------------------------------

def create_project(store, identity: AuthContext, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a draft project owned by the caller.

    Args:
        store: MarketplaceStore
        identity: Authenticated caller
        data: title, description, timelineStart, timelineEnd

    Returns:
        The stored project item
    """
    title = require_text(data.get('title'), 'title', 3, 100)
    description = require_text(data.get('description'), 'description', 10, 2000)
    timeline_start = require_datetime(data.get('timelineStart'), 'timelineStart')
    timeline_end = require_datetime(data.get('timelineEnd'), 'timelineEnd')
    _check_timeline(timeline_start, timeline_end)

    now = utc_now()
    project = {
        'projectId': new_id(),
        'ownerAddress': identity.address,
        'title': title,
        'description': description,
        'timelineStart': timeline_start,
        'timelineEnd': timeline_end,
        'status': ProjectStatus.DRAFT,
        'totalDeposited': '0',
        'createdAt': now,
        'updatedAt': now,
    }
    store.put_project(project)
    logger.info(f"Project {project['projectId']} created by {identity.address}")
    return project


def _role_detail(store, role: Dict[str, Any]) -> Dict[str, Any]:
    applications = [
        dict(a, applicant=_profile(store, a['freelancerAddress']))
        for a in store.list_applications_by_role(role['roleId'])
        if a.get('status') == ApplicationStatus.PENDING
    ]
    assignments = [
        dict(a, freelancer=_profile(store, a['freelancerAddress'], ('address', 'bio')))
        for a in store.list_assignments_by_role(role['roleId'])
    ]
    kpis = sorted(store.list_kpis_by_role(role['roleId']), key=_kpi_order)
    return dict(role, applications=applications, assignments=assignments, kpis=kpis)


def get_project(store, project_id: str) -> Dict[str, Any]:
    """Public project detail with its roles, pending applications, assignments and KPIs."""
    project = _load_project(store, project_id)
    roles = [_role_detail(store, role) for role in store.list_roles(project_id)]
    return dict(project, owner=_profile(store, project['ownerAddress']), roles=roles)


def list_projects(
    store,
    search: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0
) -> List[Dict[str, Any]]:
    """Public project listing, newest first."""
    if status is not None and status not in ProjectStatus.ALL:
        raise ValidationError(f'Unknown status: {status}')
    limit = require_int(limit, 'limit', 1, MAX_PAGE_SIZE)
    offset = require_int(offset, 'offset', 0)

    projects = store.scan_projects()
    if search:
        needle = search.lower()
        projects = [
            p for p in projects
            if needle in p.get('title', '').lower() or needle in p.get('description', '').lower()
        ]
    if status:
        projects = [p for p in projects if p.get('status') == status]

    projects.sort(key=lambda p: p.get('createdAt', ''), reverse=True)
    page = projects[offset:offset + limit]
    return [
        dict(p, owner=_profile(store, p['ownerAddress'], ('address', 'bio')),
             roles=store.list_roles(p['projectId']))
        for p in page
    ]


def update_project(store, identity: AuthContext, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Owner edits project fields. Cancellation goes through cancel_project."""
    fields = {}
    if 'title' in data:
        fields['title'] = require_text(data['title'], 'title', 3, 100)
    if 'description' in data:
        fields['description'] = require_text(data['description'], 'description', 10, 2000)
    for name in ('timelineStart', 'timelineEnd', 'poResponseDeadline'):
        if name in data:
            fields[name] = require_datetime(data[name], name)
    if 'vaultAddress' in data:
        fields['vaultAddress'] = require_address(data['vaultAddress'], 'vaultAddress')
    if 'status' in data:
        if data['status'] not in ProjectStatus.ALL:
            raise ValidationError(f"Unknown status: {data['status']}")
        if data['status'] == ProjectStatus.CANCELLED:
            raise ValidationError('Use the cancel operation to cancel a project')
        fields['status'] = data['status']
    if not fields:
        raise ValidationError('Nothing to update')

    project = _owned_project(store, identity, project_id)
    if project.get('status') in ENDED_STATUSES:
        raise InvalidState('Project already ended')
    start = fields.get('timelineStart', project.get('timelineStart'))
    end = fields.get('timelineEnd', project.get('timelineEnd'))
    if start and end:
        _check_timeline(start, end)

    fields['updatedAt'] = utc_now()
    updated = store.update_project(project_id, fields, expected_status=project['status'])
    if updated is None:
        raise InvalidState('Project changed concurrently')
    return updated


def link_vault(store, identity: AuthContext, project_id: str, vault_address: str) -> Dict[str, Any]:
    """Attach the deployed vault contract to a project."""
    return update_project(store, identity, project_id, {'vaultAddress': vault_address})


def delete_project(store, identity: AuthContext, project_id: str) -> Dict[str, Any]:
    project = _owned_project(store, identity, project_id)
    if project.get('status') != ProjectStatus.DRAFT:
        raise InvalidState('Can only delete draft projects')

    if not store.delete_project(project_id, expected_status=ProjectStatus.DRAFT):
        raise InvalidState('Can only delete draft projects')
    return {'message': 'Project deleted'}


def cancel_project(store, identity: AuthContext, project_id: str) -> Dict[str, Any]:
    """
    Cancel a running project.

    Open and assigned roles are cancelled together with their active
    assignments. The refund itself happens in the vault contract; the
    returned breakdown tells the frontend what was paid, approved and
    still open for each role.
    """
    project = _owned_project(store, identity, project_id)
    if project.get('status') in ENDED_STATUSES:
        raise InvalidState('Project already ended')

    roles = store.list_roles(project_id)
    breakdown = []
    for role in roles:
        assignments = store.list_assignments_by_role(role['roleId'])
        breakdown.append({
            'roleId': role['roleId'],
            'roleName': role.get('name'),
            'freelancer': assignments[0]['freelancerAddress'] if assignments else None,
            'kpis': status_breakdown(store.list_kpis_by_role(role['roleId'])),
        })

    updated = store.update_project(
        project_id,
        {'status': ProjectStatus.CANCELLED, 'updatedAt': utc_now()},
        expected_status=project['status']
    )
    if updated is None:
        raise InvalidState('Project changed concurrently')

    for role in roles:
        if role.get('status') not in (RoleStatus.OPEN, RoleStatus.ASSIGNED):
            continue
        store.update_role(role['roleId'], {'status': RoleStatus.CANCELLED}, expected_status=role['status'])
        for assignment in store.list_assignments_by_role(role['roleId']):
            if assignment.get('status') == AssignmentStatus.ACTIVE:
                store.set_assignment_status(
                    assignment['assignmentId'], AssignmentStatus.ACTIVE, AssignmentStatus.CANCELLED
                )

    logger.info(f"Project {project_id} cancelled with {len(roles)} roles")
    return {'message': 'Project cancelled', 'breakdown': breakdown}


def get_cancellation_status(store, project_id: str) -> Dict[str, Any]:
    project = _load_project(store, project_id)
    return {
        'status': project['status'],
        'isCancelled': project['status'] == ProjectStatus.CANCELLED,
    }


def _percentage(completed: int, total: int) -> int:
    """completed/total as a whole percentage, rounded half-up."""
    if total == 0:
        return 0
    return (completed * 200 + total) // (2 * total)


def get_project_progress(store, identity: AuthContext, project_id: str) -> Dict[str, Any]:
    """KPI completion per role and overall, for the owner or an assigned freelancer."""
    project = _load_project(store, project_id)
    roles = store.list_roles(project_id)
    assignments_by_role = {r['roleId']: store.list_assignments_by_role(r['roleId']) for r in roles}

    is_owner = project.get('ownerAddress') == identity.address
    is_freelancer = any(
        a.get('freelancerAddress') == identity.address
        for assignments in assignments_by_role.values() for a in assignments
    )
    if not is_owner and not is_freelancer:
        raise NotAuthorized('Not authorized')

    role_progress = []
    total_kpis = total_completed = 0
    for role in roles:
        kpis = store.list_kpis_by_role(role['roleId'])
        completed = len([k for k in kpis if k.get('status') in KpiStatus.PAYABLE])
        total_kpis += len(kpis)
        total_completed += completed
        assignments = assignments_by_role[role['roleId']]
        role_progress.append({
            'role': {'id': role['roleId'], 'name': role.get('name'), 'status': role.get('status')},
            'assignment': assignments[0] if assignments else None,
            'progress': {
                'total': len(kpis),
                'completed': completed,
                'pending': len([k for k in kpis if k.get('status') == KpiStatus.PENDING]),
                'submitted': len([k for k in kpis if k.get('status') == KpiStatus.SUBMITTED]),
                'rejected': len([k for k in kpis if k.get('status') == KpiStatus.REJECTED]),
                'percentage': _percentage(completed, len(kpis)),
            },
        })

    return {
        'project': {
            'id': project['projectId'],
            'title': project.get('title'),
            'status': project.get('status'),
            'vaultAddress': project.get('vaultAddress'),
        },
        'overallProgress': {
            'totalKpis': total_kpis,
            'completedKpis': total_completed,
            'percentage': _percentage(total_completed, total_kpis),
        },
        'roles': role_progress,
    }


# ----------------------------------------------------------------------
# Roles
# ----------------------------------------------------------------------

def create_role(store, identity: AuthContext, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    name = require_text(data.get('name'), 'name', 2, 50)
    description = require_text(data.get('description'), 'description', 10, 500)
    kpi_count = require_int(data.get('kpiCount'), 'kpiCount', 1, MAX_KPIS_PER_ROLE)
    payment_per_kpi = require_amount(data.get('paymentPerKpi'), 'paymentPerKpi')

    project = _owned_project(store, identity, project_id)
    if project.get('status') in ENDED_STATUSES:
        raise InvalidState('Project already ended')

    role = {
        'roleId': new_id(),
        'projectId': project_id,
        'name': name,
        'description': description,
        'kpiCount': kpi_count,
        'paymentPerKpi': payment_per_kpi,
        'status': RoleStatus.OPEN,
        'createdAt': utc_now(),
    }
    store.put_role(role)
    logger.info(f"Role {role['roleId']} added to project {project_id}")
    return role


def list_roles(store, project_id: str) -> List[Dict[str, Any]]:
    """Roles of a project with pending applications and assignments, newest first."""
    _load_project(store, project_id)
    roles = []
    for role in store.list_roles(project_id):
        applications = [
            a for a in store.list_applications_by_role(role['roleId'])
            if a.get('status') == ApplicationStatus.PENDING
        ]
        assignments = [
            dict(a, freelancer=_profile(store, a['freelancerAddress']))
            for a in store.list_assignments_by_role(role['roleId'])
        ]
        roles.append(dict(role, applications=applications, assignments=assignments))
    return sorted(roles, key=lambda r: r.get('createdAt', ''), reverse=True)


def update_role(
    store,
    identity: AuthContext,
    project_id: str,
    role_id: str,
    data: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Owner edits a role.

    Status can only be moved to completed or cancelled here; open and
    assigned are driven by applications. kpiCount is fixed once the KPIs
    have been created.
    """
    fields = {}
    if 'name' in data:
        fields['name'] = require_text(data['name'], 'name', 2, 50)
    if 'description' in data:
        fields['description'] = require_text(data['description'], 'description', 10, 500)
    if 'kpiCount' in data:
        fields['kpiCount'] = require_int(data['kpiCount'], 'kpiCount', 1, MAX_KPIS_PER_ROLE)
    if 'paymentPerKpi' in data:
        fields['paymentPerKpi'] = require_amount(data['paymentPerKpi'], 'paymentPerKpi')
    if 'status' in data:
        if data['status'] not in (RoleStatus.COMPLETED, RoleStatus.CANCELLED):
            raise ValidationError('status can only be set to completed or cancelled')
        fields['status'] = data['status']
    if not fields:
        raise ValidationError('Nothing to update')

    project = _owned_project(store, identity, project_id)
    role = _role_in_project(store, project, role_id)
    if role.get('status') in (RoleStatus.COMPLETED, RoleStatus.CANCELLED):
        raise InvalidState('Role already ended')
    if 'kpiCount' in fields and role.get('kpisCreated'):
        raise InvalidState('KPIs already created for this role')

    updated = store.update_role(role_id, fields, expected_status=role['status'])
    if updated is None:
        raise InvalidState('Role changed concurrently')
    return updated


def delete_role(store, identity: AuthContext, project_id: str, role_id: str) -> Dict[str, Any]:
    project = _owned_project(store, identity, project_id)
    _role_in_project(store, project, role_id)
    if store.list_assignments_by_role(role_id):
        raise InvalidState('Cannot delete role with active assignments')

    store.delete_role(role_id)
    return {'message': 'Role deleted'}


# ----------------------------------------------------------------------
# KPIs
# ----------------------------------------------------------------------

def _parse_kpi_descriptors(descriptors: Any) -> List[Tuple[int, str, str]]:
    if not isinstance(descriptors, list) or not descriptors:
        raise ValidationError('kpis must be a non-empty list')

    parsed = []
    for descriptor in descriptors:
        if not isinstance(descriptor, dict):
            raise ValidationError('each KPI must be an object')
        parsed.append((
            require_int(descriptor.get('kpiNumber'), 'kpiNumber', 1),
            require_text(descriptor.get('description'), 'description', 5, 500),
            require_datetime(descriptor.get('deadline'), 'deadline'),
        ))

    numbers = [number for number, _, _ in parsed]
    if len(set(numbers)) != len(numbers):
        raise ValidationError('kpiNumber values must be unique')
    return parsed


def create_kpis(
    store,
    identity: AuthContext,
    project_id: str,
    role_id: str,
    descriptors: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """
    Create all KPIs of a role.

    Exactly kpiCount descriptors must be given, and this succeeds only once
    per role. If the role is already assigned the KPIs are linked to the
    active assignment.

    Raises:
        ValidationError: malformed descriptors or count != kpiCount
        InvalidState: KPIs already exist for the role, or an accept kept
            changing the role while the KPIs were being written
    """
    parsed = _parse_kpi_descriptors(descriptors)

    project = _owned_project(store, identity, project_id)
    role = _role_in_project(store, project, role_id)

    for attempt in range(CREATE_KPIS_ATTEMPTS):
        if role.get('kpisCreated') or store.list_kpis_by_role(role_id):
            raise InvalidState('KPIs already created for this role')

        expected = int(role['kpiCount'])
        if len(parsed) != expected:
            raise ValidationError(f'Expected {expected} KPIs, got {len(parsed)}')

        active = next(
            (a for a in store.list_assignments_by_role(role_id) if a.get('status') == AssignmentStatus.ACTIVE),
            None
        )
        # An assigned role whose assignment is not visible yet must not get unlinked KPIs
        if active is not None or role.get('status') != RoleStatus.ASSIGNED:
            now = utc_now()
            items = [
                {
                    'kpiId': new_id(),
                    'projectRoleId': role_id,
                    'projectId': project_id,
                    'assignmentId': active['assignmentId'] if active else None,
                    'kpiNumber': number,
                    'description': description,
                    'deadline': deadline,
                    'amount': role['paymentPerKpi'],
                    'status': KpiStatus.PENDING,
                    'createdAt': now,
                    'updatedAt': now,
                }
                for number, description, deadline in parsed
            ]
            if store.create_kpis(role_id, items, expected_status=role['status']):
                logger.info(f"Created {len(items)} KPIs for role {role_id}")
                return sorted(items, key=_kpi_order)

        # Cancelled: KPIs appeared or the role was assigned since it was read
        logger.info(f"KPI creation for role {role_id} cancelled (attempt {attempt + 1}), reloading")
        role = _role_in_project(store, project, role_id)

    raise InvalidState('Role changed concurrently, try again')


def list_role_kpis(store, identity: AuthContext, project_id: str, role_id: str) -> List[Dict[str, Any]]:
    """KPIs of a role by kpiNumber, visible to the owner and the assigned freelancer."""
    project = _load_project(store, project_id)
    _role_in_project(store, project, role_id)

    is_owner = project.get('ownerAddress') == identity.address
    is_assigned = any(
        a.get('freelancerAddress') == identity.address
        for a in store.list_assignments_by_role(role_id)
    )
    if not is_owner and not is_assigned:
        raise NotAuthorized('Not authorized')

    return sorted(store.list_kpis_by_role(role_id), key=_kpi_order)
