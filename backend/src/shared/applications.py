"""
Role applications: freelancers apply, project owners accept or reject.

Accepting an application is the one multi-row write of the marketplace. It
runs as a single DynamoDB transaction that only commits while the role is
still open and the application still pending, so two owners (or two
browser tabs) racing on the same role produce exactly one assignment.
"""
from typing import Any, Dict, List

from .dynamo import MAX_TRANSACTION_ITEMS
from .errors import InvalidState, NotAuthorized, NotFound
from .logging import logger
from .models import ApplicationStatus, AssignmentStatus, AuthContext, RoleStatus
from .utils import new_id, utc_now
from .validation import require_text

COVER_LETTER_MIN_LENGTH = 20
COVER_LETTER_MAX_LENGTH = 1000
ACCEPT_ATTEMPTS = 3

APPLICANT_FIELDS = ('address', 'bio', 'githubUrl', 'linkedinUrl')


def application_id_for(role_id: str, address: str) -> str:
    """One application record per (role, freelancer) pair."""
    return f'{role_id}#{address}'


def _load_role(store, role_id: str):
    role = store.get_role(role_id) if role_id else None
    project = store.get_project(role['projectId']) if role else None
    if not role or not project:
        raise NotFound('Role not found')
    return role, project


def _load_application(store, application_id: str):
    application = store.get_application(application_id) if application_id else None
    if not application:
        raise NotFound('Application not found')
    role, project = _load_role(store, application['projectRoleId'])
    return application, role, project


def apply_to_role(store, identity: AuthContext, role_id: str, cover_letter: str) -> Dict[str, Any]:
    """
    Submit an application for an open role.

    Raises:
        NotFound: role does not exist
        NotAuthorized: caller owns the project
        InvalidState: role not open, or caller already applied
    """
    cover_letter = require_text(cover_letter, 'coverLetter', COVER_LETTER_MIN_LENGTH, COVER_LETTER_MAX_LENGTH)

    role, project = _load_role(store, role_id)
    if project.get('ownerAddress') == identity.address:
        raise NotAuthorized('Project owners cannot apply to their own roles')
    if role.get('status') != RoleStatus.OPEN:
        raise InvalidState('Role is not open for applications')

    now = utc_now()
    item = {
        'applicationId': application_id_for(role['roleId'], identity.address),
        'projectRoleId': role['roleId'],
        'projectId': project['projectId'],
        'freelancerAddress': identity.address,
        'status': ApplicationStatus.PENDING,
        'coverLetter': cover_letter,
        'createdAt': now,
        'updatedAt': now,
    }
    if not store.create_application(item):
        raise InvalidState('Already applied to this role')

    logger.info(f"Application {item['applicationId']} submitted")
    return item


def _reject_overflow(store, sibling_ids: List[str], now: str) -> None:
    """Reject siblings that did not fit in the accept transaction."""
    for sibling_id in sibling_ids:
        store.set_application_status(sibling_id, ApplicationStatus.PENDING, ApplicationStatus.REJECTED, now)


def accept_application(store, identity: AuthContext, application_id: str) -> Dict[str, Any]:
    """
    Accept a pending application and assign the role to its freelancer.

    Creates the assignment, links the role's KPIs to it, marks the role
    assigned and rejects every other pending application for the role.

    Returns:
        The assignment with its role, project and KPIs (by kpiNumber)

    Raises:
        NotFound: application does not exist
        NotAuthorized: caller does not own the project
        InvalidState: application already processed or role no longer open
    """
    application, role, project = _load_application(store, application_id)
    if project.get('ownerAddress') != identity.address:
        raise NotAuthorized('Not authorized')

    for attempt in range(ACCEPT_ATTEMPTS):
        if application.get('status') != ApplicationStatus.PENDING:
            raise InvalidState('Application already processed')
        if role.get('status') != RoleStatus.OPEN:
            raise InvalidState('Role is no longer open')

        now = utc_now()
        assignment = {
            'assignmentId': new_id(),
            'projectRoleId': role['roleId'],
            'projectId': project['projectId'],
            'freelancerAddress': application['freelancerAddress'],
            'status': AssignmentStatus.ACTIVE,
            'assignedAt': now,
        }
        kpi_ids = [k['kpiId'] for k in store.list_kpis_by_role(role['roleId'])]
        siblings = [
            a['applicationId'] for a in store.list_applications_by_role(role['roleId'])
            if a['applicationId'] != application['applicationId']
            and a.get('status') == ApplicationStatus.PENDING
        ]
        capacity = MAX_TRANSACTION_ITEMS - 3 - len(kpi_ids)
        in_transaction, overflow = siblings[:capacity], siblings[capacity:]
        # KPIs written but not all listed yet would end up partly unlinked
        kpis_complete = not role.get('kpisCreated') or len(kpi_ids) == int(role.get('kpiCount', 0))

        if kpis_complete and store.accept_application(application, assignment, kpi_ids, in_transaction, now):
            _reject_overflow(store, overflow, now)
            logger.info(
                f"Application {application['applicationId']} accepted, "
                f"assignment {assignment['assignmentId']} created, {len(siblings)} rejected"
            )
            kpis = sorted(store.list_kpis_by_assignment(assignment['assignmentId']),
                          key=lambda k: int(k.get('kpiNumber', 0)))
            return dict(assignment, projectRole=store.get_role(role['roleId']), project=project, kpis=kpis)

        # Cancelled: either we lost the race or a sibling changed under us
        logger.info(f"Accept of {application['applicationId']} cancelled (attempt {attempt + 1}), reloading")
        application, role, project = _load_application(store, application_id)

    raise InvalidState('Application changed concurrently, try again')


def reject_application(store, identity: AuthContext, application_id: str) -> Dict[str, Any]:
    application, role, project = _load_application(store, application_id)
    if project.get('ownerAddress') != identity.address:
        raise NotAuthorized('Not authorized')
    if application.get('status') != ApplicationStatus.PENDING:
        raise InvalidState('Application already processed')

    if not store.set_application_status(
        application_id, ApplicationStatus.PENDING, ApplicationStatus.REJECTED, utc_now()
    ):
        raise InvalidState('Application already processed')
    return {'message': 'Application rejected'}


def withdraw_application(store, identity: AuthContext, application_id: str) -> Dict[str, Any]:
    """Freelancer pulls back a pending application; they may apply again later."""
    application, role, project = _load_application(store, application_id)
    if application.get('freelancerAddress') != identity.address:
        raise NotAuthorized('Not authorized')
    if application.get('status') != ApplicationStatus.PENDING:
        raise InvalidState('Application already processed')

    if not store.set_application_status(
        application_id, ApplicationStatus.PENDING, ApplicationStatus.WITHDRAWN, utc_now()
    ):
        raise InvalidState('Application already processed')
    return {'message': 'Application withdrawn'}


def _applicant(store, address: str) -> Dict[str, Any]:
    user = store.get_user(address) or {'address': address}
    return {field: user.get(field) for field in APPLICANT_FIELDS}


def list_role_applications(store, identity: AuthContext, role_id: str) -> List[Dict[str, Any]]:
    """Applications for a role with the applicant's public profile (owner only)."""
    role, project = _load_role(store, role_id)
    if project.get('ownerAddress') != identity.address:
        raise NotAuthorized('Not authorized')

    applications = sorted(store.list_applications_by_role(role_id),
                          key=lambda a: a.get('createdAt', ''), reverse=True)
    return [dict(a, applicant=_applicant(store, a['freelancerAddress'])) for a in applications]


def list_my_applications(store, identity: AuthContext) -> List[Dict[str, Any]]:
    result = []
    for application in store.list_applications_by_freelancer(identity.address):
        role = store.get_role(application['projectRoleId'])
        project = store.get_project(role['projectId']) if role else None
        result.append(dict(application, projectRole=role, project=project))
    return sorted(result, key=lambda a: a.get('createdAt', ''), reverse=True)
