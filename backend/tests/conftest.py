"""
Shared fixtures. Environment is set before anything from `shared` is imported,
since configuration is read at import time.
"""
import importlib
import json
import os
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
sys.path.insert(0, os.path.dirname(__file__))

TEST_JWT_SECRET = 'test-secret-that-is-at-least-32-characters-long'

os.environ.setdefault('AWS_REGION', 'us-east-1')
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('USERS_TABLE', 'test-users')
os.environ.setdefault('PROJECTS_TABLE', 'test-projects')
os.environ.setdefault('ROLES_TABLE', 'test-roles')
os.environ.setdefault('APPLICATIONS_TABLE', 'test-applications')
os.environ.setdefault('ASSIGNMENTS_TABLE', 'test-assignments')
os.environ.setdefault('KPIS_TABLE', 'test-kpis')
os.environ.setdefault('TRANSACTIONS_TABLE', 'test-transactions')
os.environ['JWT_SECRET'] = TEST_JWT_SECRET
os.environ.setdefault('CHAIN_RPC_URL', 'http://127.0.0.1:8545')

from eth_account import Account  # noqa: E402
from eth_account.messages import encode_defunct  # noqa: E402

from fakes import InMemoryStore  # noqa: E402
from shared.models import AuthContext  # noqa: E402
from shared.sessions import SessionIssuer  # noqa: E402

DEADLINE = '2030-01-01T00:00:00+00:00'
PAYMENT_PER_KPI = '1000000'


def sign_text(account, message: str) -> str:
    """Sign `message` as an EIP-191 personal message; returns 0x-prefixed hex."""
    signed = Account.sign_message(encode_defunct(text=message), private_key=account.key)
    return '0x' + bytes(signed.signature).hex()


def identity_of(account) -> AuthContext:
    return AuthContext(address=account.address.lower())


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def sessions():
    return SessionIssuer(TEST_JWT_SECRET)


@pytest.fixture
def owner_account():
    return Account.create()


@pytest.fixture
def freelancer_account():
    return Account.create()


@pytest.fixture
def owner(owner_account):
    return identity_of(owner_account)


@pytest.fixture
def freelancer(freelancer_account):
    return identity_of(freelancer_account)


@pytest.fixture
def stranger():
    return identity_of(Account.create())


@pytest.fixture
def project(store, owner):
    from shared.projects import create_project
    return create_project(store, owner, {
        'title': 'Landing page revamp',
        'description': 'Rebuild the marketing site with the new brand.',
        'timelineStart': '2029-01-01T00:00:00Z',
        'timelineEnd': '2029-12-31T00:00:00Z',
    })


@pytest.fixture
def role(store, owner, project):
    from shared.projects import create_role
    return create_role(store, owner, project['projectId'], {
        'name': 'Frontend developer',
        'description': 'Builds the pages and components.',
        'kpiCount': 3,
        'paymentPerKpi': PAYMENT_PER_KPI,
    })


@pytest.fixture
def kpis(store, owner, project, role):
    from shared.projects import create_kpis
    return create_kpis(store, owner, project['projectId'], role['roleId'], [
        {'kpiNumber': n, 'description': f'Milestone number {n}', 'deadline': DEADLINE}
        for n in (1, 2, 3)
    ])


@pytest.fixture
def assigned(store, owner, freelancer, project, role, kpis):
    """A role with KPIs whose application by `freelancer` was accepted."""
    from shared.applications import accept_application, apply_to_role
    application = apply_to_role(
        store, freelancer, role['roleId'], 'I have built many landing pages before.'
    )
    assignment = accept_application(store, owner, application['applicationId'])
    return SimpleNamespace(
        project=project,
        role=role,
        application=application,
        assignment=assignment,
        kpis=assignment['kpis'],
    )


def make_event(body=None, token=None, path=None, query=None):
    """API Gateway proxy event."""
    headers = {'Content-Type': 'application/json'}
    if token:
        headers['Authorization'] = f'Bearer {token}'
    return {
        'headers': headers,
        'body': json.dumps(body) if body is not None else None,
        'pathParameters': path,
        'queryStringParameters': query,
        'requestContext': {'requestId': 'test-request'},
    }


def call(handler, event):
    """Invoke a Lambda handler; returns (statusCode, decoded body)."""
    response = handler(event, None)
    return response['statusCode'], json.loads(response['body'])


@pytest.fixture
def vault():
    vault = MagicMock()
    vault.get_balance.return_value = '0'
    return vault


@pytest.fixture
def runtime(store, sessions, vault):
    from shared.runtime import Runtime
    return Runtime(store=store, sessions=sessions, vault=vault)


@pytest.fixture
def load_handler(runtime):
    """Import a handler module bound to the in-memory runtime."""
    def load(name):
        with patch('shared.runtime.build_runtime', return_value=runtime):
            module = importlib.import_module(f'handlers.{name}')
            return importlib.reload(module).handler
    return load
