"""
Transaction Sender - Test Suite

File: tests/test_sender.py

Run with: python -m pytest tests/test_sender.py -v
"""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from txsender.erc20 import TRANSFER_SELECTOR
from txsender.exceptions import ConfigurationError
from txsender.models import ProbeStatus, TransactionParams
from txsender.sender import TransactionSender

from conftest import RECIPIENT, SIGNING_KEY, TOKEN, pending_transaction


class TestTransactionSender:
    """Test suite for the coordinator."""

    def test_create_transaction_shares_client_and_config(self, config, mock_client):
        """Test that created transactions use the sender's collaborators."""
        sender = TransactionSender(config, client=mock_client)

        tx = sender.create_transaction(to=RECIPIENT, amount=5, signing_key=SIGNING_KEY)

        assert tx.client is mock_client
        assert tx.config is config

    def test_params_with_overrides(self, config, mock_client):
        sender = TransactionSender(config, client=mock_client)
        params = TransactionParams(to=RECIPIENT, amount=5, signing_key=SIGNING_KEY)

        tx = sender.create_transaction(params, amount=9, id="override")

        assert tx.record.amount.value == 9
        assert tx.tx_id == "override"
        assert params.amount == 5

    def test_log_level_scoped_to_instances(self, config, mock_client):
        """Test that the configured level reaches instance loggers but not the package logger."""
        package_logger = logging.getLogger('txsender')
        before = package_logger.level
        sender = TransactionSender(config.with_overrides(log_level="WARNING"), client=mock_client)

        tx = sender.create_transaction(to=RECIPIENT, amount=5, signing_key=SIGNING_KEY)

        assert package_logger.level == before
        assert sender.logger.level == logging.WARNING
        assert tx.logger.level == logging.WARNING

    def test_invalid_params_raise(self, config, mock_client):
        sender = TransactionSender(config, client=mock_client)

        with pytest.raises(ConfigurationError):
            sender.create_transaction(to="bogus", signing_key=SIGNING_KEY)

    @pytest.mark.asyncio
    async def test_send_transaction(self, config, mock_client):
        """Test the create-and-send convenience entry point."""
        sender = TransactionSender(config, client=mock_client)

        tx = await sender.send_transaction(to=RECIPIENT, amount=5, signing_key=SIGNING_KEY)

        assert len(tx.hash_history) == 1
        mock_client.broadcast.assert_called_once()

    @pytest.mark.asyncio
    async def test_send_erc20(self, config, mock_client):
        sender = TransactionSender(config, client=mock_client)

        tx = await sender.send_erc20(TOKEN, RECIPIENT, 100, signing_key=SIGNING_KEY)

        assert tx.record.data.startswith(TRANSFER_SELECTOR)
        assert len(tx.hash_history) == 1

    @pytest.mark.asyncio
    async def test_check_hash(self, config, mock_client):
        """Test probing an arbitrary hash."""
        mock_client.get_transaction.return_value = pending_transaction()
        sender = TransactionSender(config, client=mock_client)

        result = await sender.check_hash("0x" + "ef" * 32)

        assert result.status is ProbeStatus.PENDING

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, config, mock_client):
        """Test that a client passed in belongs to the caller."""
        async with TransactionSender(config, client=mock_client) as sender:
            await sender.send_transaction(to=RECIPIENT, amount=5, signing_key=SIGNING_KEY)

        mock_client.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self, config):
        """Test that a sender closes the client it created."""
        with patch('txsender.sender.Web3Client') as client_class:
            client_class.return_value.close = AsyncMock()
            sender = TransactionSender(config)
            await sender.aclose()

        client_class.assert_called_once_with(config)
        client_class.return_value.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aclose_stops_auto_boost(self, config, mock_client):
        """Test that closing the sender stops background boosting."""
        sender = TransactionSender(config, client=mock_client)
        tx = await sender.send_transaction(
            to=RECIPIENT, amount=5, signing_key=SIGNING_KEY, boost_interval_seconds=60
        )
        assert tx.boosting_active

        await sender.aclose()

        assert tx.boosting_active is False
