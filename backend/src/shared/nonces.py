"""
Wallet sign-in challenges.

A challenge binds a single-use nonce, the wallet address and the time it was
issued into a human-readable message. The nonce and its timestamp are stored
on the user so that verification rebuilds the exact message that was signed.
After a successful verification the nonce is rotated, so each challenge
authenticates at most once.
"""
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from .config import config
from .errors import NotFound, SignatureInvalid
from .logging import logger, short
from .signatures import verify_signature
from .utils import utc_now
from .validation import require_address, require_signature

NONCE_BYTES = 16

CHALLENGE_TEMPLATE = (
    'Welcome to {service_name}!\n\n'
    'Click to sign in and verify your wallet ownership.\n\n'
    'This request will not trigger a blockchain transaction or cost any fees.\n\n'
    'Wallet address:\n{address}\n\n'
    'Nonce: {nonce}\n\n'
    'Timestamp: {timestamp}'
)


@dataclass(frozen=True)
class Challenge:
    address: str
    nonce: str
    timestamp: int  # epoch millis
    message: str


def generate_nonce() -> str:
    """Random single-use nonce (16 bytes, lowercase hex)."""
    return secrets.token_hex(NONCE_BYTES)


def now_millis() -> int:
    return int(time.time() * 1000)


def build_challenge_message(address: str, nonce: str, timestamp: int, service_name: str = None) -> str:
    return CHALLENGE_TEMPLATE.format(
        service_name=service_name or config.SERVICE_NAME,
        address=address.lower(),
        nonce=nonce,
        timestamp=timestamp,
    )


def issue_nonce(store, address: str, now: Optional[int] = None) -> Challenge:
    """
    Issue a new challenge for `address`.

    Creates the user on first request, otherwise overwrites its pending
    nonce (invalidating any earlier unsigned challenge).

    Args:
        store: MarketplaceStore
        address: Wallet address (validated, stored lower-cased)
        now: Epoch millis override

    Returns:
        Challenge with the message the wallet must sign
    """
    address = require_address(address)
    nonce = generate_nonce()
    timestamp = now if now is not None else now_millis()

    store.save_nonce(address, nonce, timestamp, utc_now())
    logger.info(f"Nonce issued for {address}")

    return Challenge(
        address=address,
        nonce=nonce,
        timestamp=timestamp,
        message=build_challenge_message(address, nonce, timestamp),
    )


def verify_and_rotate(store, address: str, signature: str, now: Optional[int] = None) -> bool:
    """
    Verify a signed challenge and consume its nonce.

    Returns:
        True if the signature matches the stored challenge and this call
        was the one that rotated the nonce. On False the stored nonce is
        left as it was.

    Raises:
        NotFound: no user (no nonce was ever requested) for `address`
    """
    address = require_address(address)
    user = store.get_user(address)
    if not user or not user.get('nonce'):
        raise NotFound('User not found. Request a nonce first.')

    stored_nonce = user['nonce']
    issued_at = int(user.get('nonceTimestamp') or 0)
    current = now if now is not None else now_millis()

    if current - issued_at > config.NONCE_TTL_SECONDS * 1000:
        logger.info(f"Stale challenge for {address} (issued {issued_at})")
        return False

    message = build_challenge_message(address, stored_nonce, issued_at)
    if not verify_signature(address, message, signature):
        logger.info(f"Signature verification failed for {address}: {short(signature)}")
        return False

    # Compare-and-set: a concurrent verify of the same nonce loses here
    rotated = store.rotate_nonce(address, stored_nonce, generate_nonce(), now_millis(), utc_now())
    if not rotated:
        logger.warning(f"Nonce for {address} was consumed concurrently")
        return False

    logger.info(f"Signature verified for {address}")
    return True


def login(store, sessions, address: str, signature: str) -> dict:
    """
    Exchange a signed challenge for a session token.

    Raises:
        ValidationError: malformed address or signature
        NotFound: unknown address
        SignatureInvalid: signature does not match the pending challenge
    """
    address = require_address(address)
    signature = require_signature(signature)

    if not verify_and_rotate(store, address, signature):
        raise SignatureInvalid('Invalid signature')

    return {'token': sessions.issue(address), 'address': address}
