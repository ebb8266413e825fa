from shared.projects import link_vault
from shared.runtime import build_runtime
from shared.utils import api_handler, get_path_param, parse_body

runtime = build_runtime()


@api_handler(runtime)
def handler(event, identity):
    """
    Attach a deployed vault contract to a project.
    POST /projects/{id}/vault
    """
    body = parse_body(event)
    project = link_vault(runtime.store, identity, get_path_param(event, 'id'), body.get('vaultAddress'))
    return {'project': project}
