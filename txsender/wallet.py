"""
Signing primitives for the transaction sender.

Key validation, sender address derivation and legacy (EIP-155) transaction
signing through eth_account. The broadcast hash is computed locally from the
serialized bytes, so it is known before the node acknowledges it.

File: txsender/wallet.py
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from eth_account import Account
from eth_typing import ChecksumAddress
from eth_utils import is_address, keccak, to_checksum_address, to_hex

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


PRIVATE_KEY_BYTES = 32


@dataclass
class SignedPayload:
    """Represents a signed transaction ready for broadcast."""
    raw_transaction: bytes
    tx_hash: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def raw_hex(self) -> str:
        """Serialized transaction as 0x-prefixed hex."""
        return to_hex(self.raw_transaction)


def normalize_private_key(private_key: Union[str, bytes]) -> str:
    """
    Validate a private key and return it as 0x-prefixed lowercase hex.

    Args:
        private_key: 32 raw bytes or a 64 character hex string (0x optional)

    Returns:
        Normalized private key

    Raises:
        ConfigurationError: If the key is missing or malformed. The key
            itself is never included in the message.
    """
    if isinstance(private_key, (bytes, bytearray)):
        if len(private_key) != PRIVATE_KEY_BYTES:
            raise ConfigurationError(
                f"incorrect private key: expected {PRIVATE_KEY_BYTES} bytes, got {len(private_key)}"
            )
        return "0x" + bytes(private_key).hex()

    if not isinstance(private_key, str) or not private_key:
        raise ConfigurationError("incorrect private key: no key supplied")

    body = private_key[2:] if private_key[:2] in ("0x", "0X") else private_key
    if len(body) != PRIVATE_KEY_BYTES * 2:
        raise ConfigurationError(
            f"incorrect private key: expected {PRIVATE_KEY_BYTES * 2} hex characters, got {len(body)}"
        )
    try:
        int(body, 16)
    except ValueError:
        raise ConfigurationError("incorrect private key: not a hex string") from None

    return "0x" + body.lower()


def validate_address(address: str, label: str = "address") -> ChecksumAddress:
    """
    Validate an Ethereum address and return its checksum form.

    Raises:
        ConfigurationError: If the address is invalid
    """
    if not isinstance(address, str) or not is_address(address):
        raise ConfigurationError(f"incorrect '{label}' address: {address}")
    return to_checksum_address(address)


def derive_address(private_key: str) -> ChecksumAddress:
    """Derive the sender address from a private key."""
    return Account.from_key(private_key).address


def compute_tx_hash(raw_transaction: bytes) -> str:
    """Broadcast hash of a serialized transaction (keccak256 of its bytes)."""
    return to_hex(keccak(raw_transaction))


def sign_transaction(
    fields: Dict[str, Any],
    chain_id: Optional[int],
    private_key: str
) -> SignedPayload:
    """
    Sign a legacy transaction and pre-compute its hash.

    Args:
        fields: nonce, to, value, data, gasPrice, gas
        chain_id: Chain id for replay protection, None signs without it
        private_key: Normalized private key

    Returns:
        SignedPayload with serialized bytes and hash
    """
    transaction = dict(fields)
    if chain_id is not None:
        transaction['chainId'] = chain_id

    signed = Account.sign_transaction(transaction, private_key)
    raw_transaction = bytes(signed.raw_transaction)

    payload = SignedPayload(
        raw_transaction=raw_transaction,
        tx_hash=compute_tx_hash(raw_transaction),
        fields=transaction
    )
    logger.debug(f"Signed transaction nonce={transaction.get('nonce')} hash={payload.tx_hash}")
    return payload


__all__ = [
    'SignedPayload',
    'normalize_private_key',
    'validate_address',
    'derive_address',
    'compute_tx_hash',
    'sign_transaction',
]
