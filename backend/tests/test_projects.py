"""
Tests for projects, roles and KPI creation.
"""
import pytest

from conftest import DEADLINE, PAYMENT_PER_KPI
from shared.errors import InvalidState, NotAuthorized, NotFound, ValidationError
from shared.models import AssignmentStatus, KpiStatus, ProjectStatus, RoleStatus

PROJECT = {
    'title': 'Mobile app',
    'description': 'A companion mobile app for the web shop.',
    'timelineStart': '2029-01-01T00:00:00Z',
    'timelineEnd': '2029-06-01T00:00:00Z',
}


class TestProjects:

    def test_create_is_draft(self, store, owner):
        from shared.projects import create_project

        project = create_project(store, owner, PROJECT)

        assert project['status'] == ProjectStatus.DRAFT
        assert project['ownerAddress'] == owner.address
        assert project['totalDeposited'] == '0'

    def test_timeline_order(self, store, owner):
        from shared.projects import create_project

        with pytest.raises(ValidationError):
            create_project(store, owner, dict(PROJECT, timelineEnd='2028-01-01T00:00:00Z'))

    def test_list_filters_and_pages(self, store, owner):
        from shared.projects import create_project, list_projects, update_project

        first = create_project(store, owner, dict(PROJECT, title='Alpha shop'))
        store.update_project(first['projectId'], {'createdAt': '2029-01-01T00:00:00+00:00'})
        second = create_project(store, owner, dict(PROJECT, title='Beta portal'))
        store.update_project(second['projectId'], {'createdAt': '2029-02-01T00:00:00+00:00'})
        update_project(store, owner, second['projectId'], {'status': ProjectStatus.OPEN})

        assert [p['title'] for p in list_projects(store)] == ['Beta portal', 'Alpha shop']
        assert [p['title'] for p in list_projects(store, search='alpha')] == ['Alpha shop']
        assert [p['title'] for p in list_projects(store, status=ProjectStatus.OPEN)] == ['Beta portal']
        assert [p['title'] for p in list_projects(store, limit=1, offset=1)] == ['Alpha shop']

    def test_update_by_stranger(self, store, stranger, project):
        from shared.projects import update_project

        with pytest.raises(NotAuthorized):
            update_project(store, stranger, project['projectId'], {'title': 'Hijacked'})

    def test_link_vault(self, store, owner, project):
        from shared.projects import link_vault

        vault = '0x' + 'AB' * 20
        assert link_vault(store, owner, project['projectId'], vault)['vaultAddress'] == vault.lower()

    def test_get_project_detail(self, store, owner, freelancer, assigned):
        from shared.projects import get_project

        detail = get_project(store, assigned.project['projectId'])

        [role] = detail['roles']
        assert detail['owner']['address'] == owner.address
        assert [k['kpiNumber'] for k in role['kpis']] == [1, 2, 3]
        assert role['assignments'][0]['freelancer']['address'] == freelancer.address

    def test_delete_draft_cascades(self, store, owner, freelancer, assigned):
        from shared.projects import delete_project

        delete_project(store, owner, assigned.project['projectId'])

        assert store.get_project(assigned.project['projectId']) is None
        assert store.get_role(assigned.role['roleId']) is None
        assert store.list_kpis_by_role(assigned.role['roleId']) == []
        assert store.list_applications_by_freelancer(freelancer.address) == []

    def test_delete_non_draft(self, store, owner, project):
        from shared.projects import delete_project, update_project

        update_project(store, owner, project['projectId'], {'status': ProjectStatus.OPEN})
        with pytest.raises(InvalidState):
            delete_project(store, owner, project['projectId'])

    def test_missing_project(self, store, owner):
        from shared.projects import delete_project

        with pytest.raises(NotFound):
            delete_project(store, owner, 'missing')


class TestCancel:

    def test_cancel_breakdown_and_cascade(self, store, owner, freelancer, assigned):
        from shared.kpi_workflow import approve_kpi, submit_kpi
        from shared.projects import cancel_project

        kpi_id = assigned.kpis[0]['kpiId']
        submit_kpi(store, freelancer, kpi_id, 'Finished the first milestone.')
        approve_kpi(store, owner, kpi_id)

        result = cancel_project(store, owner, assigned.project['projectId'])

        [entry] = result['breakdown']
        assert entry['freelancer'] == freelancer.address
        assert entry['kpis']['approved'] == 1
        assert entry['kpis']['approvedAmount'] == PAYMENT_PER_KPI
        assert entry['kpis']['pendingAmount'] == str(2 * int(PAYMENT_PER_KPI))
        assert store.get_project(assigned.project['projectId'])['status'] == ProjectStatus.CANCELLED
        assert store.get_role(assigned.role['roleId'])['status'] == RoleStatus.CANCELLED
        assert store.get_assignment(assigned.assignment['assignmentId'])['status'] == AssignmentStatus.CANCELLED

    def test_cancel_twice(self, store, owner, project):
        from shared.projects import cancel_project

        cancel_project(store, owner, project['projectId'])
        with pytest.raises(InvalidState):
            cancel_project(store, owner, project['projectId'])


class TestProgress:

    def test_percentage_rounds_half_up(self):
        from shared.projects import _percentage

        assert _percentage(1, 3) == 33
        assert _percentage(2, 3) == 67
        assert _percentage(1, 8) == 13
        assert _percentage(0, 0) == 0

    def test_visible_to_owner_and_freelancer(self, store, owner, freelancer, stranger, assigned):
        from shared.kpi_workflow import approve_kpi, submit_kpi
        from shared.projects import get_project_progress

        kpi_id = assigned.kpis[0]['kpiId']
        submit_kpi(store, freelancer, kpi_id, 'Finished the first milestone.')
        approve_kpi(store, owner, kpi_id)

        progress = get_project_progress(store, freelancer, assigned.project['projectId'])
        assert progress['overallProgress'] == {'totalKpis': 3, 'completedKpis': 1, 'percentage': 33}
        assert get_project_progress(store, owner, assigned.project['projectId'])['roles'][0]['progress']['pending'] == 2
        with pytest.raises(NotAuthorized):
            get_project_progress(store, stranger, assigned.project['projectId'])


class TestRoles:

    def test_create_role(self, store, owner, project):
        from shared.projects import create_role

        role = create_role(store, owner, project['projectId'], {
            'name': 'Designer', 'description': 'Designs every screen.', 'kpiCount': 2, 'paymentPerKpi': '007',
        })
        assert role['status'] == RoleStatus.OPEN
        assert role['paymentPerKpi'] == '7'

    @pytest.mark.parametrize('kpi_count', [0, 53, '3'])
    def test_kpi_count_bounds(self, store, owner, project, kpi_count):
        from shared.projects import create_role

        with pytest.raises(ValidationError):
            create_role(store, owner, project['projectId'], {
                'name': 'Designer', 'description': 'Designs every screen.',
                'kpiCount': kpi_count, 'paymentPerKpi': '1',
            })

    def test_update_status_restricted(self, store, owner, project, role):
        from shared.projects import update_role

        with pytest.raises(ValidationError):
            update_role(store, owner, project['projectId'], role['roleId'], {'status': RoleStatus.ASSIGNED})
        updated = update_role(store, owner, project['projectId'], role['roleId'], {'status': RoleStatus.CANCELLED})
        assert updated['status'] == RoleStatus.CANCELLED

    def test_kpi_count_locked_after_kpis(self, store, owner, project, role, kpis):
        from shared.projects import update_role

        with pytest.raises(InvalidState):
            update_role(store, owner, project['projectId'], role['roleId'], {'kpiCount': 4})

    def test_delete_role_with_assignment(self, store, owner, assigned):
        from shared.projects import delete_role

        with pytest.raises(InvalidState):
            delete_role(store, owner, assigned.project['projectId'], assigned.role['roleId'])

    def test_role_of_other_project(self, store, owner, role):
        from shared.projects import create_project, delete_role

        other = create_project(store, owner, PROJECT)
        with pytest.raises(NotFound):
            delete_role(store, owner, other['projectId'], role['roleId'])


class TestCreateKpis:

    def _descriptors(self, count):
        return [{'kpiNumber': n, 'description': f'Milestone {n}', 'deadline': DEADLINE} for n in range(1, count + 1)]

    def test_amount_copied_from_role(self, kpis):
        assert [k['amount'] for k in kpis] == [PAYMENT_PER_KPI] * 3
        assert all(k['status'] == KpiStatus.PENDING for k in kpis)

    def test_count_must_match(self, store, owner, project, role):
        from shared.projects import create_kpis

        with pytest.raises(ValidationError):
            create_kpis(store, owner, project['projectId'], role['roleId'], self._descriptors(2))

    def test_only_once(self, store, owner, project, role, kpis):
        from shared.projects import create_kpis

        with pytest.raises(InvalidState):
            create_kpis(store, owner, project['projectId'], role['roleId'], self._descriptors(3))

    def test_duplicate_numbers(self, store, owner, project, role):
        from shared.projects import create_kpis

        descriptors = self._descriptors(3)
        descriptors[2]['kpiNumber'] = 1
        with pytest.raises(ValidationError):
            create_kpis(store, owner, project['projectId'], role['roleId'], descriptors)

    def test_created_after_assignment_are_linked(self, store, owner, freelancer, project, role):
        from shared.applications import accept_application, apply_to_role
        from shared.projects import create_kpis

        application = apply_to_role(store, freelancer, role['roleId'], 'Happy to take this role on.')
        assignment = accept_application(store, owner, application['applicationId'])
        created = create_kpis(store, owner, project['projectId'], role['roleId'], self._descriptors(3))

        assert {k['assignmentId'] for k in created} == {assignment['assignmentId']}

    def test_list_role_kpis_visibility(self, store, owner, freelancer, stranger, assigned):
        from shared.projects import list_role_kpis

        args = (assigned.project['projectId'], assigned.role['roleId'])
        assert len(list_role_kpis(store, owner, *args)) == 3
        assert len(list_role_kpis(store, freelancer, *args)) == 3
        with pytest.raises(NotAuthorized):
            list_role_kpis(store, stranger, *args)
