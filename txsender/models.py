"""
Transaction Sender Data Model

Core data structures for the transaction lifecycle: the amount variant, nonce
modes, caller parameters, the mutable transaction record with its hash and
error histories, probe results, broadcast outcomes and diagnostic events.

File: txsender/models.py
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from eth_typing import ChecksumAddress
from eth_utils import is_hex, to_hex

from .chains import resolve_chain_id
from .config import SenderConfig
from .exceptions import ConfigurationError, RejectionError, StateError
from .wallet import derive_address, normalize_private_key, validate_address

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS & CONSTANTS
# =============================================================================

ENTIRE_BALANCE_KEYWORDS = ("all", "full")
EMPTY_DATA = "0x"
MAX_UINT256 = 2 ** 256 - 1


class NonceMode(str, Enum):
    """Nonce resolved from the account's transaction count at send time."""
    LATEST = "latest"      # Confirmed transaction count
    PENDING = "pending"    # Including transactions still in the mempool


class ProbeStatus(Enum):
    """Confirmation status of a single transaction hash."""
    NOT_FOUND = "not found"
    PENDING = "pending"
    MINED = "mined"


class LifecycleState(Enum):
    """Lifecycle state of a transaction record."""
    UNSENT = "unsent"      # No broadcast hash yet
    SENT = "sent"          # Broadcast, confirmation not yet observed
    PENDING = "pending"    # Last check found the newest variant pending
    MINED = "mined"        # A hash variant was mined (terminal)


class BoostResult(Enum):
    """Outcome of a boost attempt."""
    MINED = "mined"        # Already mined, nothing resent
    BOOSTED = "boosted"    # Resubmitted with a higher gas price
    SKIPPED = "skipped"    # Earlier transactions of the account still queued


# =============================================================================
# AMOUNT
# =============================================================================

@dataclass(frozen=True)
class Amount:
    """
    Transfer value: an exact number of wei, or the entire balance minus fees.

    ``value`` is None for the entire-balance variant.
    """
    value: Optional[int] = None

    @classmethod
    def exact(cls, value: int) -> "Amount":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"amount must be an integer number of wei, got {value!r}")
        if value < 0 or value > MAX_UINT256:
            raise ConfigurationError(f"amount out of range: {value}")
        return cls(value)

    @classmethod
    def entire_balance(cls) -> "Amount":
        return cls(None)

    @classmethod
    def parse(cls, raw: Union["Amount", int, str, Decimal, None]) -> "Amount":
        """
        Parse a caller supplied amount.

        Accepts an Amount, an integer, an integral Decimal, a decimal or hex
        string, or one of the keywords "all"/"full" for the entire balance.
        """
        if raw is None:
            return cls.exact(0)
        if isinstance(raw, Amount):
            return raw
        if isinstance(raw, str):
            text = raw.strip().lower()
            if text in ENTIRE_BALANCE_KEYWORDS:
                return cls.entire_balance()
            try:
                return cls.exact(int(text, 16) if text.startswith("0x") else int(text))
            except ValueError:
                raise ConfigurationError(f"incorrect amount: {raw!r}") from None
        if isinstance(raw, Decimal):
            if raw != raw.to_integral_value():
                raise ConfigurationError(f"amount must be a whole number of wei, got {raw}")
            return cls.exact(int(raw))
        return cls.exact(raw)

    @property
    def is_entire_balance(self) -> bool:
        return self.value is None

    def __str__(self) -> str:
        return "entire balance" if self.value is None else str(self.value)


# =============================================================================
# CALLER PARAMETERS
# =============================================================================

@dataclass
class TransactionParams:
    """
    Parameters for a new transaction.

    None means "use the configured default" for ``gas_price``, ``chain``,
    ``boost_interval_seconds`` and ``retry_on_rejection``.
    """
    to: Optional[str] = None
    amount: Union[Amount, int, str, Decimal, None] = 0
    data: Union[str, bytes, None] = EMPTY_DATA
    gas_price: Union[int, str, None] = None
    gas_limit: Optional[int] = None
    nonce: Union[int, str, NonceMode] = NonceMode.LATEST
    signing_key: Union[str, bytes, None] = field(default=None, repr=False)
    sender_address: Optional[str] = None
    chain: Union[str, int, None] = None
    boost_interval_seconds: Optional[float] = None
    retry_on_rejection: Optional[bool] = None
    account: Any = field(default=None, repr=False)
    id: Optional[str] = None


# =============================================================================
# BROADCAST OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class Rejected:
    """Node refused the transaction outright."""
    reason: str


@dataclass(frozen=True)
class Accepted:
    """Node acknowledged the transaction hash."""
    tx_hash: str


@dataclass(frozen=True)
class Included:
    """Receipt observed for the broadcast transaction."""
    tx_hash: str
    receipt: Any = None


BroadcastOutcome = Union[Rejected, Accepted, Included]


# =============================================================================
# PROBE RESULT
# =============================================================================

@dataclass
class ProbeResult:
    """Confirmation status of a hash, with receipt and fee once mined."""
    tx_hash: str
    status: ProbeStatus
    receipt: Optional[Any] = None
    fee_paid: Optional[int] = None
    block_number: Optional[int] = None

    @property
    def is_mined(self) -> bool:
        return self.status is ProbeStatus.MINED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            'tx_hash': self.tx_hash,
            'result': self.status.value,
            'block_number': self.block_number,
            'fee_paid': self.fee_paid,
        }


# =============================================================================
# DIAGNOSTIC EVENTS
# =============================================================================

@dataclass
class TransactionEvent:
    """Progress event emitted by every mutating operation."""
    tx_id: str
    action: str
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tx_id': self.tx_id,
            'action': self.action,
            'tx_hash': self.tx_hash,
            'error': self.error,
            'timestamp': self.timestamp.isoformat(),
        }


# =============================================================================
# TRANSACTION RECORD
# =============================================================================

# Fields fixed once the first hash has been broadcast
_LOCKED_AFTER_BROADCAST = frozenset({'sender_address', 'nonce', 'signing_key'})


@dataclass
class TransactionRecord:
    """
    Mutable state of one logical transfer.

    A record maps to one transfer intent even though each fee bump produces a
    new hash for the same nonce. ``hash_history`` only ever grows.
    """
    tx_id: str
    sender_address: ChecksumAddress
    signing_key: str = field(repr=False)
    to: Optional[ChecksumAddress] = None
    amount: Amount = field(default_factory=lambda: Amount.exact(0))
    data: str = EMPTY_DATA
    gas_price: Optional[int] = None
    gas_limit: Optional[int] = None
    nonce: Union[int, NonceMode] = NonceMode.LATEST
    chain: Union[str, int, None] = None
    chain_id: Optional[int] = None
    boost_interval_seconds: float = 0
    retry_on_rejection: bool = False
    hash_history: List[str] = field(default_factory=list)
    error_history: List[RejectionError] = field(default_factory=list)

    def __setattr__(self, name: str, value: Any) -> None:
        if (
            name in _LOCKED_AFTER_BROADCAST
            and self.__dict__.get('hash_history')
            and self.__dict__.get(name) != value
        ):
            raise StateError(f"'{name}' cannot change once the transaction is broadcast", self.tx_id)
        super().__setattr__(name, value)

    # ---------------------------------------------------------------------
    # Construction
    # ---------------------------------------------------------------------

    @classmethod
    def from_params(cls, params: TransactionParams, config: SenderConfig) -> "TransactionRecord":
        """
        Validate caller parameters and build a record.

        Raises:
            ConfigurationError: On any invalid or conflicting parameter
        """
        signing_key = params.signing_key
        sender_address = params.sender_address
        if params.account is not None:
            sender_address = params.account.address
            signing_key = params.account.key

        to = validate_address(params.to, "to") if params.to else None
        signing_key = normalize_private_key(signing_key)
        if sender_address:
            sender_address = validate_address(sender_address, "sender")
        else:
            sender_address = derive_address(signing_key)

        gas_limit = params.gas_limit
        if gas_limit is not None and (isinstance(gas_limit, bool) or not isinstance(gas_limit, int) or gas_limit <= 0):
            raise ConfigurationError(f"gas estimate not a number: {gas_limit!r}")

        gas_price = cls.parse_gas_price(
            params.gas_price if params.gas_price is not None else config.start_gas_price
        )
        nonce = cls._parse_nonce(params.nonce)
        amount = Amount.parse(params.amount)
        if amount.is_entire_balance and nonce is not NonceMode.LATEST:
            raise ConfigurationError(
                'Unable to send full balance with a "pending" or fixed nonce, only "latest" can be accepted'
            )

        chain = params.chain if params.chain is not None else config.default_chain
        chain_id = resolve_chain_id(chain)

        boost_interval = (
            params.boost_interval_seconds
            if params.boost_interval_seconds is not None
            else config.boost_interval_seconds
        )
        if boost_interval < 0:
            raise ConfigurationError(f"boost interval must not be negative, got {boost_interval}")

        return cls(
            tx_id=str(params.id) if params.id is not None else uuid.uuid4().hex[:12],
            sender_address=sender_address,
            signing_key=signing_key,
            to=to,
            amount=amount,
            data=cls._parse_data(params.data),
            gas_price=gas_price,
            gas_limit=gas_limit,
            nonce=nonce,
            chain=chain,
            chain_id=chain_id,
            boost_interval_seconds=boost_interval,
            retry_on_rejection=(
                params.retry_on_rejection
                if params.retry_on_rejection is not None
                else config.retry_on_rejection
            ),
        )

    @staticmethod
    def parse_gas_price(raw: Union[int, str, None]) -> Optional[int]:
        if raw is None or (isinstance(raw, str) and raw.strip().lower() == "auto"):
            return None
        if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
            raise ConfigurationError(f"gas price must be a positive integer or 'auto', got {raw!r}")
        return raw

    @staticmethod
    def _parse_nonce(raw: Union[int, str, NonceMode]) -> Union[int, NonceMode]:
        if isinstance(raw, NonceMode):
            return raw
        if isinstance(raw, str):
            try:
                return NonceMode(raw.strip().lower())
            except ValueError:
                raise ConfigurationError(f"nonce must be an integer, 'latest' or 'pending', got {raw!r}") from None
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            raise ConfigurationError(f"nonce must be a non-negative integer, got {raw!r}")
        return raw

    @staticmethod
    def _parse_data(raw: Union[str, bytes, None]) -> str:
        if raw is None or raw == b"" or raw == "":
            return EMPTY_DATA
        if isinstance(raw, (bytes, bytearray)):
            return to_hex(bytes(raw))
        if isinstance(raw, str) and raw.startswith("0x") and is_hex(raw) and len(raw) % 2 == 0:
            return raw.lower()
        raise ConfigurationError(f"data must be bytes or a 0x-prefixed hex string, got {raw!r}")

    # ---------------------------------------------------------------------
    # History
    # ---------------------------------------------------------------------

    def add_hash(self, tx_hash: str) -> bool:
        """Append a hash unless already present. Returns True if appended."""
        if tx_hash in self.hash_history:
            return False
        self.hash_history.append(tx_hash)
        return True

    @property
    def last_hash(self) -> Optional[str]:
        return self.hash_history[-1] if self.hash_history else None

    @property
    def nonce_resolved(self) -> bool:
        return isinstance(self.nonce, int)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging. Never includes the signing key."""
        return {
            'id': self.tx_id,
            'from': self.sender_address,
            'to': self.to,
            'amount': str(self.amount),
            'data': self.data,
            'gas_price': self.gas_price,
            'gas_limit': self.gas_limit,
            'nonce': self.nonce.value if isinstance(self.nonce, NonceMode) else self.nonce,
            'chain_id': self.chain_id,
            'hashes': list(self.hash_history),
            'errors': [str(error) for error in self.error_history],
        }


__all__ = [
    'NonceMode',
    'ProbeStatus',
    'LifecycleState',
    'BoostResult',
    'Amount',
    'TransactionParams',
    'Rejected',
    'Accepted',
    'Included',
    'BroadcastOutcome',
    'ProbeResult',
    'TransactionEvent',
    'TransactionRecord',
    'EMPTY_DATA',
]
