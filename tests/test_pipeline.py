"""
Submission Pipeline - Test Suite

Validates signing, outcome handling and the rejection retry policy.

File: tests/test_pipeline.py

Run with: python -m pytest tests/test_pipeline.py -v
"""

from unittest.mock import Mock

import pytest
from eth_account import Account

from txsender.exceptions import StateError
from txsender.models import Accepted, Included, Rejected, TransactionParams, TransactionRecord
from txsender.pipeline import SubmissionPipeline

from conftest import RECIPIENT, SENDER, SIGNING_KEY, scripted_broadcast


def resolved_record(config, **overrides):
    values = {
        'to': RECIPIENT,
        'amount': 1000,
        'signing_key': SIGNING_KEY,
        'gas_price': 10,
        'gas_limit': 21000,
        'nonce': 7,
    }
    values.update(overrides)
    return TransactionRecord.from_params(TransactionParams(**values), config)


@pytest.fixture
def emit():
    return Mock()


# =============================================================================
# SIGNING
# =============================================================================

class TestBuildRawTransaction:
    """Test suite for raw transaction construction."""

    def test_signed_payload_recovers_sender(self, mock_client, config, emit):
        """Test that the payload is signed by the record's key."""
        record = resolved_record(config)
        signed = SubmissionPipeline(mock_client, config, emit).build_raw_transaction(record)

        assert Account.recover_transaction(signed.raw_transaction) == SENDER
        assert signed.fields['chainId'] == 1
        assert signed.fields['nonce'] == 7
        assert signed.tx_hash.startswith("0x") and len(signed.tx_hash) == 66

    def test_unresolved_fields_rejected(self, mock_client, config, emit):
        """Test that unresolved records cannot be signed."""
        record = resolved_record(config, gas_limit=None)

        with pytest.raises(StateError):
            SubmissionPipeline(mock_client, config, emit).build_raw_transaction(record)


# =============================================================================
# OUTCOMES
# =============================================================================

class TestSubmitOutcomes:
    """Test suite for broadcast outcome handling."""

    @pytest.mark.asyncio
    async def test_accepted_records_hash(self, mock_client, config, emit):
        """Test the common success path."""
        record = resolved_record(config)
        result = await SubmissionPipeline(mock_client, config, emit).submit(record)

        assert isinstance(result.outcome, Accepted)
        assert result.accepted
        assert record.hash_history == [result.signed.tx_hash]
        assert result.follow_up is not None
        actions = [call.args[0] for call in emit.call_args_list]
        assert actions == ['send', 'accepted']

    @pytest.mark.asyncio
    async def test_included_first_records_hash(self, mock_client, config, emit):
        """Test a stream whose first outcome is inclusion."""
        async def included_stream(raw_transaction):
            yield Included("0x" + "cd" * 32, {'blockNumber': 1})

        mock_client.broadcast = Mock(side_effect=included_stream)
        record = resolved_record(config)

        result = await SubmissionPipeline(mock_client, config, emit).submit(record)

        assert isinstance(result.outcome, Included)
        assert record.hash_history == ["0x" + "cd" * 32]
        assert result.follow_up is None

    @pytest.mark.asyncio
    async def test_permanent_rejection_not_retried(self, mock_client, config, emit):
        """Test that 'nonce too low' is terminal even with retry enabled."""
        mock_client.broadcast = scripted_broadcast("nonce too low")
        record = resolved_record(config, retry_on_rejection=True)

        result = await SubmissionPipeline(mock_client, config, emit).submit(record)

        assert isinstance(result.outcome, Rejected)
        assert mock_client.broadcast.call_count == 1
        assert record.hash_history == []
        assert len(record.error_history) == 1
        error = record.error_history[0]
        assert error.permanent and error.terminal
        assert error.reason == "nonce too low"

    @pytest.mark.asyncio
    async def test_transient_rejection_retried_with_same_payload(self, mock_client, config, emit):
        """Test that transient rejections are retried with identical bytes."""
        mock_client.broadcast = scripted_broadcast("connection reset", "accept")
        record = resolved_record(config, retry_on_rejection=True)

        result = await SubmissionPipeline(mock_client, config, emit).submit(record)

        assert isinstance(result.outcome, Accepted)
        assert result.attempts == 2
        first, second = mock_client.broadcast.call_args_list
        assert first.args[0] == second.args[0]
        assert len(record.error_history) == 1
        assert record.error_history[0].terminal is False
        assert 'retry' in [call.args[0] for call in emit.call_args_list]

    @pytest.mark.asyncio
    async def test_transient_rejection_without_retry_policy(self, mock_client, config, emit):
        """Test that without the retry policy any rejection is terminal."""
        mock_client.broadcast = scripted_broadcast("connection reset")
        record = resolved_record(config, retry_on_rejection=False)

        result = await SubmissionPipeline(mock_client, config, emit).submit(record)

        assert isinstance(result.outcome, Rejected)
        assert record.error_history[0].permanent is False
        assert record.error_history[0].terminal is True

    @pytest.mark.asyncio
    async def test_rejected_hash_recorded_when_enabled(self, mock_client, config, emit):
        """Test the record-hash-anyway policy."""
        config = config.with_overrides(record_hash_on_rejection=True)
        mock_client.broadcast = scripted_broadcast("already known")
        record = resolved_record(config)

        result = await SubmissionPipeline(mock_client, config, emit).submit(record)

        assert record.hash_history == [result.signed.tx_hash]
        assert record.error_history[0].tx_hash == result.signed.tx_hash
