"""
Tests for profiles, portfolio and balance views.
"""
from unittest.mock import MagicMock

import pytest

from shared.errors import NotFound, ValidationError

WORK = 'Delivered the hero section and the pricing table.'
NOW = '2030-01-01T00:00:00+00:00'


def _sign_up(store, identity):
    store.save_nonce(identity.address, 'a' * 32, 1700000000000, NOW)


def _pay(store, owner, freelancer, kpi_id):
    from shared.kpi_workflow import approve_kpi, confirm_kpi, submit_kpi

    submit_kpi(store, freelancer, kpi_id, WORK)
    approve_kpi(store, owner, kpi_id)
    return confirm_kpi(store, freelancer, kpi_id)


class TestProfile:

    def test_challenge_fields_hidden(self, store, freelancer):
        from shared.users import get_profile, update_profile

        _sign_up(store, freelancer)

        profile = get_profile(store, freelancer)
        assert profile['address'] == freelancer.address
        assert 'nonce' not in profile
        assert 'nonceTimestamp' not in profile

        updated = update_profile(store, freelancer, {'bio': 'Frontend engineer', 'githubUrl': 'https://github.com/me'})
        assert updated['bio'] == 'Frontend engineer'
        assert 'nonce' not in updated
        assert 'nonceTimestamp' not in updated

    def test_unknown_user(self, store, stranger):
        from shared.users import get_profile

        with pytest.raises(NotFound):
            get_profile(store, stranger)

    @pytest.mark.parametrize('data', [{}, {'email': 'not-an-email'}, {'linkedinUrl': 'ftp://x'}])
    def test_invalid_update(self, store, freelancer, data):
        from shared.users import update_profile

        _sign_up(store, freelancer)
        with pytest.raises(ValidationError):
            update_profile(store, freelancer, data)

    def test_public_profile_counts(self, store, owner, freelancer, assigned):
        from shared.users import get_public_profile

        _sign_up(store, owner)
        _sign_up(store, freelancer)

        owner_view = get_public_profile(store, owner.address)
        freelancer_view = get_public_profile(store, freelancer.address.upper().replace('0X', '0x'))

        assert owner_view['stats'] == {'projectsOwned': 1, 'applicationsSubmitted': 0, 'assignments': 0}
        assert freelancer_view['stats'] == {'projectsOwned': 0, 'applicationsSubmitted': 1, 'assignments': 1}
        assert 'nonce' not in freelancer_view['user']


class TestWorkHistory:

    def test_assignments_include_role_and_project(self, store, freelancer, assigned):
        from shared.users import list_my_assignments

        [assignment] = list_my_assignments(store, freelancer)
        assert assignment['projectRole']['roleId'] == assigned.role['roleId']
        assert assignment['project']['projectId'] == assigned.project['projectId']

    def test_portfolio_sums_paid_kpis(self, store, owner, freelancer, assigned):
        from shared.users import get_portfolio

        for kpi in assigned.kpis[:2]:
            _pay(store, owner, freelancer, kpi['kpiId'])

        portfolio = get_portfolio(store, freelancer)

        assert portfolio['completedKpis'] == 2
        assert portfolio['totalEarned'] == '2000000'
        assert {p['projectTitle'] for p in portfolio['projects']} == {assigned.project['title']}

    def test_balance_counts_approved(self, store, owner, freelancer, assigned):
        from shared.kpi_workflow import approve_kpi, submit_kpi
        from shared.users import get_balance

        kpi_id = assigned.kpis[0]['kpiId']
        submit_kpi(store, freelancer, kpi_id, WORK)
        approve_kpi(store, owner, kpi_id)

        balance = get_balance(store, freelancer)
        assert balance['availableBalance'] == '1000000'
        assert balance['totalKpis'] == 3


class TestProjectBalances:

    def test_vault_balance_degrades_to_zero(self, store, owner, assigned):
        from shared.projects import link_vault
        from shared.users import get_project_balances
        from shared.vault import VaultClient

        link_vault(store, owner, assigned.project['projectId'], '0x' + '12' * 20)
        w3 = MagicMock()
        w3.eth.contract.return_value.functions.getBalance.return_value.call.side_effect = ConnectionError('down')

        [balance] = get_project_balances(store, VaultClient(w3, retries=1), owner)

        assert balance['vaultAddress'] == '0x' + '12' * 20
        assert balance['vaultBalance'] == '0'
        assert balance['title'] == assigned.project['title']

    def test_vault_balance_reported(self, store, owner, assigned):
        from shared.projects import link_vault
        from shared.users import get_project_balances

        link_vault(store, owner, assigned.project['projectId'], '0x' + '12' * 20)
        vault = MagicMock()
        vault.get_balance.return_value = '3000000'

        [balance] = get_project_balances(store, vault, owner)
        assert balance['vaultBalance'] == '3000000'


class TestEarnings:

    def test_to_before_from(self, store, freelancer):
        from shared.users import get_earnings

        with pytest.raises(ValidationError):
            get_earnings(store, freelancer, '2030-02-01T00:00:00Z', '2030-01-01T00:00:00Z')

    def test_date_only_end_covers_whole_day(self, store, owner, freelancer, assigned):
        from shared.users import get_earnings

        kpi_id = assigned.kpis[0]['kpiId']
        _pay(store, owner, freelancer, kpi_id)
        store.update_kpi(kpi_id, {'updatedAt': '2030-01-31T15:30:00+00:00'})

        assert get_earnings(store, freelancer, '2030-01-01', '2030-01-31')['paidKpis'] == 1
        assert get_earnings(store, freelancer, '2030-01-01', '2030-01-30')['paidKpis'] == 0
        assert get_earnings(store, freelancer, '2030-01-01', '2030-01-31T12:00:00Z')['paidKpis'] == 0
