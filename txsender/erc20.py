"""
ERC-20 call-data encoding.

Builds the call data for the two token functions the sender uses,
``transfer(address,uint256)`` and ``balanceOf(address)``. Arguments are
encoded as 32-byte big-endian words in hex.

File: txsender/erc20.py
"""

from typing import Union

from eth_utils import function_signature_to_4byte_selector, remove_0x_prefix, to_hex

from .exceptions import ConfigurationError
from .wallet import validate_address

TRANSFER_SIGNATURE = "transfer(address,uint256)"
BALANCE_OF_SIGNATURE = "balanceOf(address)"

TRANSFER_SELECTOR = to_hex(function_signature_to_4byte_selector(TRANSFER_SIGNATURE))      # 0xa9059cbb
BALANCE_OF_SELECTOR = to_hex(function_signature_to_4byte_selector(BALANCE_OF_SIGNATURE))  # 0x70a08231

WORD_HEX_CHARS = 64
MAX_UINT256 = 2 ** 256 - 1


def pad_uint256(value: int) -> str:
    """
    Format an unsigned integer as a 32-byte big-endian hex word (no 0x).

    Raises:
        ConfigurationError: If the value does not fit in uint256
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"token amount must be an integer, got {value!r}")
    if value < 0 or value > MAX_UINT256:
        raise ConfigurationError(f"token amount out of uint256 range: {value}")
    return format(value, 'x').rjust(WORD_HEX_CHARS, '0')


def pad_address(address: str) -> str:
    """Left-pad an address to a 32-byte hex word (no 0x)."""
    checksummed = validate_address(address, "token recipient")
    return remove_0x_prefix(checksummed).lower().rjust(WORD_HEX_CHARS, '0')


def encode_transfer(to: str, amount: int) -> str:
    """Call data for ``transfer(to, amount)``."""
    return TRANSFER_SELECTOR + pad_address(to) + pad_uint256(amount)


def encode_balance_of(owner: str) -> str:
    """Call data for ``balanceOf(owner)``."""
    return BALANCE_OF_SELECTOR + pad_address(owner)


def decode_uint256(raw: Union[bytes, str]) -> int:
    """Decode a single uint256 return value."""
    if isinstance(raw, str):
        text = remove_0x_prefix(raw)
        return int(text, 16) if text else 0
    return int.from_bytes(bytes(raw), 'big') if raw else 0


__all__ = [
    'TRANSFER_SELECTOR',
    'BALANCE_OF_SELECTOR',
    'pad_uint256',
    'pad_address',
    'encode_transfer',
    'encode_balance_of',
    'decode_uint256',
]
