"""
Read-only client for the per-project escrow vault contracts.

Chain reads are best effort: each call is retried VAULT_CALL_RETRIES times and
then degrades to a safe default with a warning, so an RPC outage never fails
the request that asked for on-chain data. Nothing here signs or sends
transactions; deposits are built as calldata for the frontend wallet.
"""
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3

from .config import config
from .errors import UpstreamUnavailable
from .logging import logger
from .validation import require_address, require_amount

VAULT_ABI = [
    {
        "inputs": [],
        "name": "getBalance",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "kpiIndex", "type": "uint256"}],
        "name": "getKpiStatus",
        "outputs": [
            {"internalType": "bool", "name": "completed", "type": "bool"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getProjectInfo",
        "outputs": [
            {"internalType": "address", "name": "owner", "type": "address"},
            {"internalType": "address", "name": "token", "type": "address"},
            {"internalType": "uint256", "name": "totalDeposited", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "deposit",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "caller", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "Deposited",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "uint256", "name": "kpiIndex", "type": "uint256"},
            {"indexed": True, "internalType": "address", "name": "freelancer", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "KpiApproved",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "caller", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "refundAmount", "type": "uint256"},
        ],
        "name": "ProjectCancelled",
        "type": "event",
    },
]

VAULT_EVENTS = ('Deposited', 'KpiApproved', 'ProjectCancelled')


def _plain(value: Any) -> Any:
    """Event args as JSON-friendly values; uint256 becomes a decimal string."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.lower() if Web3.is_address(value) else value
    return str(value)


class VaultClient:
    """Reads vault state through a JSON-RPC endpoint."""

    def __init__(self, w3: Web3, retries: int = 2):
        self.w3 = w3
        self.retries = retries

    @classmethod
    def from_config(cls, cfg=config) -> 'VaultClient':
        provider = Web3.HTTPProvider(cfg.CHAIN_RPC_URL, request_kwargs={'timeout': cfg.CHAIN_RPC_TIMEOUT})
        return cls(Web3(provider), retries=cfg.VAULT_CALL_RETRIES)

    def _contract(self, vault_address: str):
        address = require_address(vault_address, 'vaultAddress')
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=VAULT_ABI)

    def _call(self, description: str, fn: Callable[[], Any]) -> Any:
        """
        Run a chain read, retrying on failure.

        Raises:
            UpstreamUnavailable: every attempt failed
        """
        last_error = None
        for attempt in range(1, self.retries + 2):
            try:
                return fn()
            except Exception as e:
                last_error = e
                logger.warning(f"Vault read {description} failed (attempt {attempt}): {e}")
        raise UpstreamUnavailable(f'Vault read {description} failed', reason=str(last_error))

    def get_balance(self, vault_address: str) -> str:
        """Token balance held by the vault, '0' when the chain is unreachable."""
        contract = self._contract(vault_address)
        try:
            return str(self._call('getBalance', contract.functions.getBalance().call))
        except UpstreamUnavailable:
            return '0'

    def get_kpi_status(self, vault_address: str, kpi_index: int) -> Dict[str, Any]:
        contract = self._contract(vault_address)
        try:
            completed, amount = self._call(
                'getKpiStatus', contract.functions.getKpiStatus(int(kpi_index)).call
            )
        except UpstreamUnavailable:
            return {'completed': False, 'amount': '0'}
        return {'completed': bool(completed), 'amount': str(amount)}

    def get_project_info(self, vault_address: str) -> Optional[Dict[str, str]]:
        contract = self._contract(vault_address)
        try:
            owner, token, total_deposited = self._call(
                'getProjectInfo', contract.functions.getProjectInfo().call
            )
        except UpstreamUnavailable:
            return None
        return {
            'owner': owner.lower(),
            'token': token.lower(),
            'totalDeposited': str(total_deposited),
        }

    def get_events(self, vault_address: str, from_block: int = 0, to_block: Any = 'latest') -> List[Dict[str, Any]]:
        """
        Deposited, KpiApproved and ProjectCancelled logs of a vault.

        Returns:
            Events ordered by block and log index, [] when the chain is unreachable
        """
        contract = self._contract(vault_address)
        events = []
        for name in VAULT_EVENTS:
            event = getattr(contract.events, name)()
            try:
                logs = self._call(name, lambda: event.get_logs(from_block=from_block, to_block=to_block))
            except UpstreamUnavailable:
                return []
            for log in logs:
                events.append({
                    'event': name,
                    'blockNumber': log['blockNumber'],
                    'logIndex': log['logIndex'],
                    'txHash': Web3.to_hex(log['transactionHash']),
                    'args': {k: _plain(v) for k, v in dict(log['args']).items()},
                })
        return sorted(events, key=lambda e: (e['blockNumber'], e['logIndex']))

    def build_deposit_call(self, vault_address: str, amount: str) -> Dict[str, str]:
        """Calldata for the frontend wallet to send a deposit to the vault."""
        amount = require_amount(amount)
        contract = self._contract(vault_address)
        return {
            'to': vault_address.lower(),
            'data': contract.encode_abi('deposit'),
            'value': amount,
        }
