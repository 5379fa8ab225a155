"""
Fee/Nonce Resolver

Fills the fields a record leaves open (gas price, nonce, gas limit and an
entire-balance amount) from current network and account state, just before
the record is signed.

File: txsender/resolver.py
"""

import logging
from typing import Any, Dict

from .exceptions import ResolutionError
from .models import Amount, NonceMode, TransactionRecord
from .web3_client import RPC_ERRORS, Web3Client

logger = logging.getLogger(__name__)


# Added to the node's suggested gas price
GAS_PRICE_MARGIN_WEI = 1


class FieldResolver:
    """Resolve unset transaction fields against the node."""

    def __init__(self, client: Web3Client):
        self.client = client
        self.logger = logging.getLogger(f'{__name__}.resolver')

    async def resolve(self, record: TransactionRecord) -> TransactionRecord:
        """
        Resolve gas price, nonce, gas limit and amount in that order.

        The entire-balance amount is resolved last because it depends on the
        final gas price and gas limit.

        Args:
            record: Record to complete in place

        Returns:
            The same record

        Raises:
            ResolutionError: If any node query fails, or gas estimation fails
                both with and without a gas price
        """
        try:
            if record.gas_price is None:
                network_price = await self.client.get_gas_price()
                record.gas_price = network_price + GAS_PRICE_MARGIN_WEI
                self.logger.debug(f"[{record.tx_id}] gas price resolved to {record.gas_price} wei")

            if isinstance(record.nonce, NonceMode):
                record.nonce = await self.client.get_transaction_count(
                    record.sender_address, record.nonce.value
                )
                self.logger.debug(f"[{record.tx_id}] nonce resolved to {record.nonce}")

            if record.gas_limit is None:
                record.gas_limit = await self._estimate_gas(record)
                self.logger.debug(f"[{record.tx_id}] gas limit estimated at {record.gas_limit}")

            if record.amount.is_entire_balance:
                balance = await self.client.get_balance(record.sender_address, 'latest')
                value = balance - record.gas_price * record.gas_limit
                if value < 0:
                    raise ResolutionError(
                        f"balance {balance} does not cover fee {record.gas_price * record.gas_limit}",
                        record.tx_id
                    )
                record.amount = Amount.exact(value)
                self.logger.info(f"[{record.tx_id}] entire balance resolved to {value} wei")

        except RPC_ERRORS as e:
            raise ResolutionError(f"Field resolution failed: {e}", record.tx_id) from e

        return record

    async def _estimate_gas(self, record: TransactionRecord) -> int:
        call = self._estimation_call(record)
        try:
            return await self.client.estimate_gas(call)
        except RPC_ERRORS as first_error:
            self.logger.warning(
                f"[{record.tx_id}] gas estimation with gas price failed ({first_error}), retrying without it"
            )
            without_price = {key: value for key, value in call.items() if key != 'gasPrice'}
            try:
                return await self.client.estimate_gas(without_price)
            except RPC_ERRORS as e:
                raise ResolutionError(f"Gas estimation failed: {e}", record.tx_id) from e

    @staticmethod
    def _estimation_call(record: TransactionRecord) -> Dict[str, Any]:
        # Entire-balance value is unknown until the fee is known
        value = 0 if record.amount.is_entire_balance else record.amount.value
        call: Dict[str, Any] = {
            'from': record.sender_address,
            'value': value,
            'data': record.data,
            'gasPrice': record.gas_price,
        }
        if record.to is not None:
            call['to'] = record.to
        return call


__all__ = [
    'FieldResolver',
    'GAS_PRICE_MARGIN_WEI',
]
