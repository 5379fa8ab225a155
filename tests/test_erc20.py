"""
ERC-20 Call Data - Test Suite

File: tests/test_erc20.py

Run with: python -m pytest tests/test_erc20.py -v
"""

import pytest

from txsender.erc20 import (
    BALANCE_OF_SELECTOR,
    TRANSFER_SELECTOR,
    decode_uint256,
    encode_balance_of,
    encode_transfer,
    pad_uint256,
)
from txsender.exceptions import ConfigurationError

from conftest import RECIPIENT


class TestEncoding:
    """Test suite for token call-data encoding."""

    def test_selectors(self):
        """Test the standard function selectors."""
        assert TRANSFER_SELECTOR == "0xa9059cbb"
        assert BALANCE_OF_SELECTOR == "0x70a08231"

    def test_pad_uint256(self):
        """Test 32-byte big-endian formatting."""
        assert pad_uint256(0) == "0" * 64
        assert pad_uint256(255) == "0" * 62 + "ff"
        assert pad_uint256(2 ** 256 - 1) == "f" * 64

    @pytest.mark.parametrize("value", [-1, 2 ** 256, "5", True])
    def test_pad_uint256_out_of_range(self, value):
        with pytest.raises(ConfigurationError):
            pad_uint256(value)

    def test_encode_transfer(self):
        """Test transfer(address,uint256) call data layout."""
        data = encode_transfer(RECIPIENT, 10 ** 18)

        assert len(data) == 2 + 8 + 64 + 64
        assert data[10:74] == "0" * 24 + RECIPIENT[2:]
        assert int(data[74:], 16) == 10 ** 18

    def test_encode_balance_of(self):
        data = encode_balance_of(RECIPIENT)
        assert data == BALANCE_OF_SELECTOR + "0" * 24 + RECIPIENT[2:]

    def test_encode_rejects_bad_recipient(self):
        with pytest.raises(ConfigurationError):
            encode_transfer("0xnothex", 1)

    def test_decode_uint256(self):
        assert decode_uint256((42).to_bytes(32, 'big')) == 42
        assert decode_uint256("0x" + "0" * 62 + "2a") == 42
        assert decode_uint256(b"") == 0
