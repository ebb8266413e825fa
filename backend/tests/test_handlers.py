"""
Tests for the Lambda request boundary: authentication, error mapping and responses.
"""
from unittest.mock import MagicMock

from conftest import call, make_event

ADDRESS = '0x' + '12' * 20


class TestApiHandler:

    def test_missing_token_is_401(self, load_handler):
        status, body = call(load_handler('users.get_me'), make_event())

        assert status == 401
        assert body == {'error': 'Missing authorization header', 'code': 'UNAUTHENTICATED'}

    def test_invalid_token_is_401(self, load_handler):
        status, body = call(load_handler('users.get_me'), make_event(token='abc.def.ghi'))

        assert status == 401
        assert body['error'] == 'Invalid or expired token'

    def test_not_found_is_404(self, load_handler, sessions, store):
        store.save_nonce(ADDRESS, 'n', 0, '2030-01-01T00:00:00+00:00')
        status, body = call(load_handler('kpis.confirm_kpi'),
                            make_event(token=sessions.issue(ADDRESS), path={'id': 'missing'}))

        assert status == 404
        assert body['code'] == 'NOT_FOUND'

    def test_validation_error_is_400(self, load_handler, sessions):
        status, body = call(load_handler('projects.create_project'),
                            make_event(body={'title': 'x'}, token=sessions.issue(ADDRESS)))

        assert status == 400
        assert body['code'] == 'VALIDATION_ERROR'

    def test_invalid_json_is_400(self, load_handler, sessions):
        event = make_event(token=sessions.issue(ADDRESS))
        event['body'] = '{not json'
        status, body = call(load_handler('projects.create_project'), event)

        assert status == 400
        assert body['error'] == 'Invalid JSON'

    def test_unexpected_error_is_500(self, load_handler, sessions, store):
        store.get_user = MagicMock(side_effect=RuntimeError('boom'))
        status, body = call(load_handler('users.get_me'), make_event(token=sessions.issue(ADDRESS)))

        assert status == 500
        assert body['code'] == 'INTERNAL_ERROR'

    def test_cors_headers(self, load_handler):
        response = load_handler('projects.list_projects')(make_event(), None)

        assert response['statusCode'] == 200
        assert response['headers']['Access-Control-Allow-Origin'] == '*'


class TestPublicRoutes:

    def test_request_nonce(self, load_handler, store):
        status, body = call(load_handler('auth.request_nonce'), make_event(body={'address': ADDRESS}))

        assert status == 200
        assert store.get_user(ADDRESS)['nonce'] == body['nonce']
        assert body['message'].startswith('Welcome to ')

    def test_verify_unknown_address(self, load_handler):
        status, body = call(load_handler('auth.verify_signature'),
                            make_event(body={'address': ADDRESS, 'signature': '0x' + '11' * 65}))

        assert status == 404
        assert body['error'] == 'User not found. Request a nonce first.'

    def test_get_missing_project(self, load_handler):
        status, _ = call(load_handler('projects.get_project'), make_event(path={'id': 'missing'}))
        assert status == 404

    def test_cancellation_status(self, load_handler, store, owner, project):
        from shared.projects import cancel_project

        handler = load_handler('projects.get_cancellation_status')
        status, body = call(handler, make_event(path={'id': project['projectId']}))
        assert status == 200
        assert body == {'status': 'draft', 'isCancelled': False}

        cancel_project(store, owner, project['projectId'])
        _, body = call(handler, make_event(path={'id': project['projectId']}))
        assert body == {'status': 'cancelled', 'isCancelled': True}

        status, _ = call(handler, make_event(path={'id': 'missing'}))
        assert status == 404


class TestContracts:

    def test_vault_balance_from_client(self, load_handler, sessions, vault):
        vault.get_balance.return_value = '42'
        vault_address = '0x' + '34' * 20
        status, body = call(load_handler('contracts.get_vault_balance'),
                            make_event(token=sessions.issue(ADDRESS), path={'address': vault_address}))

        assert status == 200
        assert body == {'balance': '42'}
        vault.get_balance.assert_called_once_with(vault_address)

    def test_kpi_index_must_be_numeric(self, load_handler, sessions):
        status, _ = call(load_handler('contracts.get_kpi_status'),
                         make_event(token=sessions.issue(ADDRESS),
                                    path={'address': '0x' + '34' * 20, 'index': 'x'}))
        assert status == 400
