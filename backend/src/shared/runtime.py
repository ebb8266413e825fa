"""
Process-wide service wiring, built once at Lambda cold start.
"""
from dataclasses import dataclass

from .config import config
from .dynamo import MarketplaceStore
from .sessions import SessionIssuer
from .vault import VaultClient


@dataclass(frozen=True)
class Runtime:
    store: MarketplaceStore
    sessions: SessionIssuer
    vault: VaultClient


def build_runtime(cfg=config) -> Runtime:
    """
    Construct the storage handle, session issuer and vault client.

    Raises:
        ConfigurationError: JWT secret missing or too short
    """
    return Runtime(
        store=MarketplaceStore.from_config(cfg),
        sessions=SessionIssuer.from_config(cfg),
        vault=VaultClient.from_config(cfg),
    )
