"""
End-to-end marketplace flow through the Lambda handlers, with real wallet signatures.
"""
from eth_account import Account

from conftest import DEADLINE, call, make_event, sign_text


def _sign_in(load_handler, account):
    _, challenge = call(load_handler('auth.request_nonce'), make_event(body={'address': account.address}))
    status, body = call(load_handler('auth.verify_signature'), make_event(body={
        'address': account.address,
        'signature': sign_text(account, challenge['message']),
    }))
    assert status == 200
    return body['token']


def test_project_to_payout(load_handler):
    owner, freelancer = Account.create(), Account.create()
    owner_token = _sign_in(load_handler, owner)
    freelancer_token = _sign_in(load_handler, freelancer)

    status, body = call(load_handler('projects.create_project'), make_event(token=owner_token, body={
        'title': 'Data dashboard',
        'description': 'Internal analytics dashboard for sales.',
        'timelineStart': '2029-01-01T00:00:00Z',
        'timelineEnd': '2029-03-01T00:00:00Z',
    }))
    assert status == 201
    project_id = body['project']['projectId']

    status, body = call(load_handler('roles.create_role'), make_event(
        token=owner_token, path={'id': project_id}, body={
            'name': 'Data engineer',
            'description': 'Builds the ingestion pipelines.',
            'kpiCount': 2,
            'paymentPerKpi': '1000000',
        }))
    assert status == 201
    role_id = body['role']['roleId']

    status, body = call(load_handler('roles.create_kpis'), make_event(
        token=owner_token, path={'id': project_id, 'roleId': role_id}, body={'kpis': [
            {'kpiNumber': 1, 'description': 'Ingest CRM data', 'deadline': DEADLINE},
            {'kpiNumber': 2, 'description': 'Build the charts', 'deadline': DEADLINE},
        ]}))
    assert status == 201

    status, body = call(load_handler('applications.apply_to_role'), make_event(
        token=freelancer_token, query={'roleId': role_id},
        body={'coverLetter': 'I build data pipelines every day.'}))
    assert status == 201
    application_id = body['application']['applicationId']

    status, body = call(load_handler('applications.accept_application'),
                        make_event(token=owner_token, path={'id': application_id}))
    assert status == 200
    kpi_ids = [k['kpiId'] for k in body['assignment']['kpis']]

    # The owner may not submit work on the freelancer's behalf
    status, body = call(load_handler('kpis.submit_kpi'), make_event(
        token=owner_token, path={'id': kpi_ids[0]}, body={'submissionData': 'Pipelines are live now.'}))
    assert status == 403

    for kpi_id in kpi_ids:
        status, body = call(load_handler('kpis.submit_kpi'), make_event(
            token=freelancer_token, path={'id': kpi_id}, body={'submissionData': 'Pipelines are live now.'}))
        assert status == 200
        status, body = call(load_handler('kpis.approve_kpi'),
                            make_event(token=owner_token, path={'id': kpi_id}, body={}))
        assert body['kpi']['status'] == 'approved'

    status, body = call(load_handler('users.get_balance'), make_event(token=freelancer_token))
    assert body['balance']['availableBalance'] == '2000000'

    status, body = call(load_handler('kpis.confirm_kpi'),
                        make_event(token=freelancer_token, path={'id': kpi_ids[0]}))
    assert body['kpi']['status'] == 'paid'

    # Confirming again is a state conflict
    status, body = call(load_handler('kpis.confirm_kpi'),
                        make_event(token=freelancer_token, path={'id': kpi_ids[0]}))
    assert status == 409

    status, body = call(load_handler('kpis.record_payout'), make_event(
        token=owner_token, path={'id': kpi_ids[1]}, body={
            'payoutTxHash': '0x' + 'c' * 64,
            'vaultBalanceAtEnd': '0',
            'yieldEarned': '100000',
        }))
    assert body['kpi']['status'] == 'paid'

    status, body = call(load_handler('users.get_earnings'), make_event(token=freelancer_token))
    assert body['earnings']['paidKpis'] == 2
    assert body['earnings']['totals']['freelancerTotal'] == '2040000'

    status, body = call(load_handler('projects.get_progress'),
                        make_event(token=owner_token, path={'id': project_id}))
    assert body['overallProgress']['percentage'] == 100
    assert body['roles'][0]['role']['status'] == 'completed'

    status, body = call(load_handler('users.get_project_balances'), make_event(token=owner_token))
    [balance] = body['projects']
    assert balance['spent'] == '2000000'
    assert balance['ownerYield'] == '40000'

    status, body = call(load_handler('transactions.list_project_transactions'),
                        make_event(token=owner_token, path={'id': project_id}))
    assert [t['type'] for t in body['transactions']] == ['payment']
