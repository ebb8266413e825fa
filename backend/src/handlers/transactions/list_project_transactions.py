from shared.runtime import build_runtime
from shared.transactions import list_project_transactions
from shared.utils import api_handler, get_path_param

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Audit trail of deposits, payments and penalties of a project.
    GET /projects/{id}/transactions
    """
    return {'transactions': list_project_transactions(runtime.store, identity, get_path_param(event, 'id'))}
