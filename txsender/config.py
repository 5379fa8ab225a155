"""
Transaction Sender Configuration

Immutable configuration shared by the coordinator and every transaction it
creates. Values are read once from the environment (and an optional .env
file) by load_config(); nothing mutates a SenderConfig after construction.

File: txsender/config.py
"""

import os
import logging
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_PROVIDER_URL = "http://localhost:8545"


# =============================================================================
# HELPER FUNCTIONS FOR ENVIRONMENT VARIABLES
# =============================================================================

def get_env_int(key: str, default: str) -> int:
    """Safely convert environment variable to integer, handling float strings."""
    return int(float(os.getenv(key, default)))


def get_env_decimal(key: str, default: str) -> Decimal:
    """Safely convert environment variable to Decimal."""
    return Decimal(os.getenv(key, default))


def get_env_bool(key: str, default: str) -> bool:
    """Convert environment variable to boolean."""
    value = os.getenv(key, default).lower()
    return value in ('true', '1', 'yes', 'on')


def get_env_optional_int(key: str) -> Optional[int]:
    """Integer environment variable, None when unset or empty."""
    value = os.getenv(key, "").strip()
    if not value:
        return None
    return int(float(value))


# =============================================================================
# CONFIGURATION OBJECT
# =============================================================================

@dataclass(frozen=True)
class SenderConfig:
    """
    Configuration for the transaction sender.

    Attributes:
        provider_url: JSON-RPC endpoint of the node
        default_chain: Chain name, alias or numeric id used when a transaction
            does not name one (None means ask the node)
        gas_price_step_percent: Gas price increase applied by boost/cancel
        start_gas_price: Initial gas price (wei) for new transactions,
            None means fetch the network price at send time
        boost_interval_seconds: Default auto-boost interval, 0 disables
        retry_on_rejection: Default retry policy for transient rejections
        rejection_retry_delay_seconds: Delay between rejected broadcasts
        record_hash_on_rejection: Keep the precomputed hash of a terminally
            rejected broadcast, since it may still be mined
        receipt_timeout_seconds: How long a broadcast is followed for its
            receipt, 0 disables inclusion tracking
        receipt_poll_seconds: Poll latency while following a receipt
        request_timeout_seconds: HTTP timeout for RPC requests
        rpc_retry_attempts: Attempts for read-only RPC queries on
            connection failures
        wait_interval_seconds: Default poll interval for wait()
        event_history_size: Diagnostic events kept per transaction
        log_level: Logging level name
    """
    provider_url: str = DEFAULT_PROVIDER_URL
    default_chain: Optional[Union[str, int]] = None
    gas_price_step_percent: Decimal = Decimal('10')
    start_gas_price: Optional[int] = None
    boost_interval_seconds: float = 0
    retry_on_rejection: bool = False
    rejection_retry_delay_seconds: float = 10
    record_hash_on_rejection: bool = False
    receipt_timeout_seconds: float = 750
    receipt_poll_seconds: float = 5
    request_timeout_seconds: float = 30
    rpc_retry_attempts: int = 3
    wait_interval_seconds: float = 15
    event_history_size: int = 100
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration values."""
        if not self.provider_url:
            raise ConfigurationError("provider_url must not be empty")
        if Decimal(self.gas_price_step_percent) <= 0:
            raise ConfigurationError(
                f"gas_price_step_percent must be positive, got {self.gas_price_step_percent}"
            )
        if self.start_gas_price is not None and (
            isinstance(self.start_gas_price, bool) or not isinstance(self.start_gas_price, int)
            or self.start_gas_price <= 0
        ):
            raise ConfigurationError(f"start_gas_price must be a positive integer, got {self.start_gas_price}")

        for name in (
            'boost_interval_seconds',
            'rejection_retry_delay_seconds',
            'receipt_timeout_seconds',
            'receipt_poll_seconds',
            'request_timeout_seconds',
            'wait_interval_seconds',
        ):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")

        if self.rpc_retry_attempts < 1:
            raise ConfigurationError("rpc_retry_attempts must be at least 1")
        if self.event_history_size < 1:
            raise ConfigurationError("event_history_size must be at least 1")
        if self.log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigurationError(f"Unknown log level: {self.log_level}")

    def with_overrides(self, **overrides) -> "SenderConfig":
        """Return a copy of this configuration with some fields replaced."""
        return replace(self, **overrides)

    def summary(self) -> str:
        """One-line configuration summary for logging."""
        return (
            f"provider={self.provider_url} chain={self.default_chain or 'node'} "
            f"step={self.gas_price_step_percent}% boost_interval={self.boost_interval_seconds}s "
            f"retry_on_rejection={self.retry_on_rejection}"
        )


def load_config(env_file: Optional[Union[str, Path]] = None, **overrides) -> SenderConfig:
    """
    Build a SenderConfig from environment variables.

    Args:
        env_file: Optional path to a .env file, defaults to ./.env if present
        **overrides: Field values that take precedence over the environment

    Returns:
        Immutable SenderConfig

    Raises:
        ConfigurationError: If a variable cannot be parsed or fails validation
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    try:
        values = {
            'provider_url': os.getenv('TXSENDER_PROVIDER_URL', DEFAULT_PROVIDER_URL),
            'default_chain': os.getenv('TXSENDER_CHAIN') or None,
            'gas_price_step_percent': get_env_decimal('TXSENDER_GAS_PRICE_STEP', '10'),
            'start_gas_price': get_env_optional_int('TXSENDER_START_GAS_PRICE'),
            'boost_interval_seconds': float(os.getenv('TXSENDER_BOOST_INTERVAL', '0')),
            'retry_on_rejection': get_env_bool('TXSENDER_RETRY_ON_REJECTION', 'False'),
            'rejection_retry_delay_seconds': float(os.getenv('TXSENDER_RETRY_DELAY', '10')),
            'record_hash_on_rejection': get_env_bool('TXSENDER_RECORD_REJECTED_HASH', 'False'),
            'receipt_timeout_seconds': float(os.getenv('TXSENDER_RECEIPT_TIMEOUT', '750')),
            'receipt_poll_seconds': float(os.getenv('TXSENDER_RECEIPT_POLL', '5')),
            'request_timeout_seconds': float(os.getenv('TXSENDER_REQUEST_TIMEOUT', '30')),
            'rpc_retry_attempts': get_env_int('TXSENDER_RPC_RETRY_ATTEMPTS', '3'),
            'wait_interval_seconds': float(os.getenv('TXSENDER_WAIT_INTERVAL', '15')),
            'event_history_size': get_env_int('TXSENDER_EVENT_HISTORY', '100'),
            'log_level': os.getenv('TXSENDER_LOG_LEVEL', 'INFO').upper(),
        }
    except (ValueError, InvalidOperation) as e:
        raise ConfigurationError(f"Invalid environment configuration: {e}") from e

    values.update(overrides)
    config = SenderConfig(**values)
    logger.info(f"Sender configuration loaded: {config.summary()}")
    return config


__all__ = [
    'SenderConfig',
    'load_config',
    'get_env_int',
    'get_env_decimal',
    'get_env_bool',
    'DEFAULT_PROVIDER_URL',
]
