"""
Configuration - Test Suite

File: tests/test_config.py

Run with: python -m pytest tests/test_config.py -v
"""

import os
from dataclasses import FrozenInstanceError
from decimal import Decimal
from unittest.mock import patch

import pytest

from txsender.config import SenderConfig, load_config
from txsender.exceptions import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch):
    """Environment without TXSENDER_* variables, restored after the test."""
    with patch.dict(os.environ):
        for key in list(os.environ):
            if key.startswith("TXSENDER_"):
                del os.environ[key]
        yield monkeypatch


class TestLoadConfig:
    """Test suite for environment-driven configuration."""

    def test_defaults(self, clean_env, tmp_path):
        """Test defaults when nothing is set."""
        config = load_config(env_file=tmp_path / "missing.env")

        assert config.provider_url == "http://localhost:8545"
        assert config.gas_price_step_percent == Decimal('10')
        assert config.boost_interval_seconds == 0
        assert config.retry_on_rejection is False
        assert config.rejection_retry_delay_seconds == 10
        assert config.receipt_timeout_seconds == 750
        assert config.default_chain is None

    def test_environment_values(self, clean_env, tmp_path):
        """Test values read from the environment."""
        clean_env.setenv("TXSENDER_PROVIDER_URL", "https://rpc.example")
        clean_env.setenv("TXSENDER_CHAIN", "sepolia")
        clean_env.setenv("TXSENDER_GAS_PRICE_STEP", "12.5")
        clean_env.setenv("TXSENDER_RETRY_ON_REJECTION", "yes")
        clean_env.setenv("TXSENDER_START_GAS_PRICE", "2000000000")

        config = load_config(env_file=tmp_path / "missing.env")

        assert config.provider_url == "https://rpc.example"
        assert config.default_chain == "sepolia"
        assert config.gas_price_step_percent == Decimal('12.5')
        assert config.retry_on_rejection is True
        assert config.start_gas_price == 2_000_000_000

    def test_env_file(self, clean_env, tmp_path):
        """Test values read from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("TXSENDER_BOOST_INTERVAL=45\nTXSENDER_LOG_LEVEL=debug\n")

        config = load_config(env_file=env_file)

        assert config.boost_interval_seconds == 45
        assert config.log_level == "DEBUG"

    def test_overrides_win(self, clean_env, tmp_path):
        clean_env.setenv("TXSENDER_RETRY_DELAY", "3")
        config = load_config(env_file=tmp_path / "missing.env", rejection_retry_delay_seconds=1)
        assert config.rejection_retry_delay_seconds == 1

    def test_unparseable_value(self, clean_env, tmp_path):
        """Test that malformed variables raise ConfigurationError."""
        clean_env.setenv("TXSENDER_GAS_PRICE_STEP", "ten")

        with pytest.raises(ConfigurationError):
            load_config(env_file=tmp_path / "missing.env")


class TestSenderConfigValidation:
    """Test suite for SenderConfig validation."""

    @pytest.mark.parametrize("overrides", [
        {'gas_price_step_percent': Decimal('0')},
        {'boost_interval_seconds': -1},
        {'rejection_retry_delay_seconds': -1},
        {'rpc_retry_attempts': 0},
        {'start_gas_price': 0},
        {'provider_url': ""},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigurationError):
            SenderConfig(**overrides)

    def test_immutable(self):
        """Test that configuration cannot be mutated after construction."""
        config = SenderConfig()

        with pytest.raises(FrozenInstanceError):
            config.provider_url = "http://other"

        assert config.with_overrides(boost_interval_seconds=5).boost_interval_seconds == 5
        assert config.boost_interval_seconds == 0
