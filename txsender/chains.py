"""
Chain identifier resolution.

Maps the chain names accepted by the sender (historical network aliases such
as "mainnet" or "ropsten", and chainlist short names such as "arb1") to the
numeric chain id used for EIP-155 signing.

File: txsender/chains.py
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainInfo:
    """Static information about an EVM network."""
    chain_id: int
    name: str
    short_name: str
    currency_symbol: str
    is_testnet: bool = False


# Known network aliases, matched case-insensitively before the registry
CHAIN_ALIASES: Dict[str, int] = {
    'mainnet': 1,
    'main': 1,
    'homestead': 1,
    'ethereum': 1,
    'ropsten': 3,
    'rinkeby': 4,
    'goerli': 5,
    'kovan': 42,
    'sepolia': 11155111,
    'holesky': 17000,
}


# Chain registry keyed by chain id, searched by exact short name
CHAIN_REGISTRY: Dict[int, ChainInfo] = {
    1: ChainInfo(1, "Ethereum Mainnet", "eth", "ETH"),
    10: ChainInfo(10, "OP Mainnet", "oeth", "ETH"),
    56: ChainInfo(56, "BNB Smart Chain Mainnet", "bnb", "BNB"),
    100: ChainInfo(100, "Gnosis", "gno", "XDAI"),
    137: ChainInfo(137, "Polygon Mainnet", "pol", "POL"),
    250: ChainInfo(250, "Fantom Opera", "ftm", "FTM"),
    8453: ChainInfo(8453, "Base", "base", "ETH"),
    42161: ChainInfo(42161, "Arbitrum One", "arb1", "ETH"),
    43114: ChainInfo(43114, "Avalanche C-Chain", "avax", "AVAX"),
    17000: ChainInfo(17000, "Holesky", "holesky", "ETH", is_testnet=True),
    80002: ChainInfo(80002, "Polygon Amoy", "polygonamoy", "POL", is_testnet=True),
    84532: ChainInfo(84532, "Base Sepolia", "basesep", "ETH", is_testnet=True),
    421614: ChainInfo(421614, "Arbitrum Sepolia", "arb-sep", "ETH", is_testnet=True),
    11155111: ChainInfo(11155111, "Sepolia", "sep", "ETH", is_testnet=True),
    11155420: ChainInfo(11155420, "OP Sepolia", "opsep", "ETH", is_testnet=True),
}

_REGISTRY_BY_SHORT_NAME: Dict[str, ChainInfo] = {
    info.short_name: info for info in CHAIN_REGISTRY.values()
}


def get_chain_info(chain_id: int) -> Optional[ChainInfo]:
    """Get registry information for a chain ID."""
    return CHAIN_REGISTRY.get(chain_id)


def find_chain_by_short_name(short_name: str) -> Optional[ChainInfo]:
    """Look up a registry entry by its exact short name."""
    return _REGISTRY_BY_SHORT_NAME.get(short_name)


def resolve_chain_id(chain: Optional[Union[str, int]]) -> Optional[int]:
    """
    Resolve a chain identifier to its numeric id.

    Resolution order: bare integers (or decimal strings) are used directly,
    then the alias table, then the registry short names.

    Args:
        chain: Chain name, alias, short name or numeric id; None means
            "let the node decide"

    Returns:
        Numeric chain id, or None if no chain was given

    Raises:
        ConfigurationError: If the identifier cannot be resolved
    """
    if chain is None:
        return None

    if isinstance(chain, bool):
        raise ConfigurationError(f"Invalid chain identifier: {chain!r}")

    if isinstance(chain, int):
        if chain <= 0:
            raise ConfigurationError(f"Chain id must be positive, got {chain}")
        return chain

    if not isinstance(chain, str):
        raise ConfigurationError(f"Invalid chain identifier: {chain!r}")

    name = chain.strip()
    if name.isdigit():
        return resolve_chain_id(int(name))

    alias = CHAIN_ALIASES.get(name.lower())
    if alias is not None:
        return alias

    info = find_chain_by_short_name(name)
    if info is not None:
        logger.debug(f"Resolved chain '{name}' via registry: {info.name} ({info.chain_id})")
        return info.chain_id

    raise ConfigurationError(f"Unknown chain: {chain!r}")


__all__ = [
    'ChainInfo',
    'CHAIN_ALIASES',
    'CHAIN_REGISTRY',
    'get_chain_info',
    'find_chain_by_short_name',
    'resolve_chain_id',
]
