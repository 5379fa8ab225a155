"""
Sender utilities.

Logging setup, display formatting, gas price escalation and broadcast
rejection classification shared by the pipeline and the controller.

File: txsender/utils.py
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Union

logger = logging.getLogger(__name__)


# =============================================================================
# REJECTION CLASSIFICATION
# =============================================================================

class RejectionClass(Enum):
    """Classification of broadcast rejections for retry logic."""
    PERMANENT = "permanent"    # Retrying the same payload can never succeed
    TRANSIENT = "transient"    # Node hiccup, retry after a delay


# Substrings of node error messages that identify permanent rejections
PERMANENT_REJECTION_MARKERS = (
    "already known",
    "known transaction",
    "nonce too low",
    "replacement transaction underpriced",
    "already imported",
)


def classify_rejection(reason: str) -> RejectionClass:
    """
    Classify a broadcast rejection reason.

    Args:
        reason: Error message returned by the node

    Returns:
        Rejection classification
    """
    if not reason:
        return RejectionClass.TRANSIENT

    reason_lower = reason.lower()
    if any(marker in reason_lower for marker in PERMANENT_REJECTION_MARKERS):
        return RejectionClass.PERMANENT
    return RejectionClass.TRANSIENT


# =============================================================================
# GAS CALCULATIONS
# =============================================================================

def bump_gas_price(gas_price: int, step_percent: Union[Decimal, int]) -> int:
    """
    Increase a gas price by a percentage step.

    The increment is floored to whole wei and is at least 1 wei so that a
    replacement always outbids the transaction it replaces.

    Args:
        gas_price: Current gas price in wei
        step_percent: Percentage to add

    Returns:
        New gas price in wei
    """
    increment = int(Decimal(gas_price) * Decimal(step_percent) / Decimal('100'))
    new_gas_price = gas_price + max(increment, 1)

    logger.debug(f"Gas bump: {gas_price} -> {new_gas_price} wei (+{step_percent}%)")
    return new_gas_price


# =============================================================================
# FORMATTING
# =============================================================================

def setup_logging(level: str = "INFO"):
    """
    Set up basic logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='[%(levelname)s] %(asctime)s %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def format_address(address: str, length: int = 8) -> str:
    """
    Format Ethereum address for display.

    Args:
        address: Full Ethereum address
        length: Number of characters to show from start

    Returns:
        Formatted address (e.g., "0x123456...7890")
    """
    if not address or len(address) < 10:
        return address

    return f"{address[:length]}...{address[-4:]}"


def format_hash(tx_hash: str, length: int = 10) -> str:
    """
    Format transaction hash for display.

    Args:
        tx_hash: Full transaction hash
        length: Number of characters to show from start

    Returns:
        Formatted hash (e.g., "0x12345678...")
    """
    if not tx_hash or len(tx_hash) < 10:
        return tx_hash

    return f"{tx_hash[:length]}..."


def wei_to_ether(wei_amount: Union[int, str]) -> Decimal:
    """Convert Wei to Ether."""
    return Decimal(str(wei_amount)) / Decimal('1e18')


def wei_to_gwei(wei_amount: Union[int, str]) -> Decimal:
    """Convert Wei to Gwei."""
    return Decimal(str(wei_amount)) / Decimal('1e9')


__all__ = [
    'RejectionClass',
    'PERMANENT_REJECTION_MARKERS',
    'classify_rejection',
    'bump_gas_price',
    'setup_logging',
    'format_address',
    'format_hash',
    'wei_to_ether',
    'wei_to_gwei',
]
