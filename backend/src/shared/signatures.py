"""
Wallet signature verification (EIP-191 personal messages).
"""
from eth_account import Account
from eth_account.messages import encode_defunct

from .logging import logger, short


def recover_address(message: str, signature: str) -> str:
    """Recover the checksummed address that signed `message`."""
    return Account.recover_message(encode_defunct(text=message), signature=signature)


def verify_signature(claimed_address: str, message: str, signature: str) -> bool:
    """
    Check that `signature` over `message` was produced by `claimed_address`.

    Args:
        claimed_address: Address the caller claims to own (any case)
        message: Exact text that was signed
        signature: 0x-prefixed 65-byte signature

    Returns:
        True when the recovered signer matches, False otherwise. Malformed
        input never raises.
    """
    if not claimed_address or not message or not signature:
        return False

    try:
        recovered = recover_address(message, signature)
    except Exception as e:
        logger.info(f"Signature recovery failed for {claimed_address} ({short(signature)}): {e}")
        return False

    matched = recovered.lower() == claimed_address.lower()
    if not matched:
        logger.info(f"Signature signer mismatch: expected {claimed_address.lower()}, recovered {recovered.lower()}")
    return matched
