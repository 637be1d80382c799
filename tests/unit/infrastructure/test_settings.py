"""
Unit tests for Settings and load_config.

Usage:
    laborant monnayeur --unit
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from monnayeur.config.settings import Settings, load_config
from tests.helpers import LaborantTest

REQUIRED = {
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "CHAIN_RPC_URL": "http://localhost:8545",
    "TOKEN_CONTRACT_ADDRESS": "0x" + "1" * 40,
}


class TestSettings(LaborantTest):
    """Unit tests for application settings."""

    component_name = "monnayeur"
    test_category = "unit"

    # ================================================================
    # Field validation tests
    # ================================================================

    def test_defaults(self):
        """Test pipeline defaults."""
        self.reporter.info("Testing settings defaults", context="Test")

        settings = Settings(**REQUIRED)

        assert settings.MINT_AMOUNT == Decimal("2")
        assert settings.PENDING_TIMEOUT_MINUTES == 30
        assert settings.BATCH_SIZE == 50
        assert settings.REFERRAL_BONUS_TYPE == "fixed"

    def test_log_level_normalized(self):
        """Test log level is upper-cased."""
        assert Settings(**REQUIRED, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level(self):
        """Test unknown log level is refused."""
        with pytest.raises(ValidationError):
            Settings(**REQUIRED, LOG_LEVEL="LOUD")

    def test_bonus_type_validated(self):
        """Test bonus type accepts only known kinds."""
        assert Settings(**REQUIRED, REFERRAL_BONUS_TYPE="PERCENTAGE").REFERRAL_BONUS_TYPE == (
            "percentage"
        )
        with pytest.raises(ValidationError):
            Settings(**REQUIRED, REFERRAL_BONUS_TYPE="tiered")

    def test_batch_size_bounds(self):
        """Test batch size stays within contract limits."""
        with pytest.raises(ValidationError):
            Settings(**REQUIRED, BATCH_SIZE=0)
        with pytest.raises(ValidationError):
            Settings(**REQUIRED, BATCH_SIZE=501)

    def test_explorer_url_trailing_slash(self):
        """Test explorer base is stored without trailing slash."""
        settings = Settings(**REQUIRED, EXPLORER_URL="https://amoy.polygonscan.com/")
        assert settings.EXPLORER_URL == "https://amoy.polygonscan.com"

    def test_missing_required(self, monkeypatch):
        """Test required connection settings must be present."""
        for key in REQUIRED:
            monkeypatch.delenv(key, raising=False)

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    # ================================================================
    # load_config tests
    # ================================================================

    def test_load_config_merges_yaml(self, monkeypatch):
        """Test environment YAML overrides default YAML."""
        self.reporter.info("Testing YAML layering", context="Test")

        for key, value in REQUIRED.items():
            monkeypatch.setenv(key, value)
        monkeypatch.delenv("CLAIM_RESPONSE_TIMEOUT", raising=False)
        monkeypatch.delenv("SCHEDULER_ENABLED", raising=False)

        settings = load_config(env="test")

        assert settings.ENV == "test"
        assert settings.CLAIM_RESPONSE_TIMEOUT == 5
        assert settings.SCHEDULER_ENABLED is False
        assert settings.SWEEP_CONCURRENCY == 10

    def test_environment_beats_yaml(self, monkeypatch):
        """Test environment variables outrank YAML values."""
        self.reporter.info("Testing environment priority", context="Test")

        for key, value in REQUIRED.items():
            monkeypatch.setenv(key, value)
        monkeypatch.setenv("CLAIM_RESPONSE_TIMEOUT", "12")

        settings = load_config(env="test")

        assert settings.CLAIM_RESPONSE_TIMEOUT == 12

    # ================================================================
    # Claim lease tests
    # ================================================================

    def test_lease_must_outlive_submission(self):
        """Test a lease shorter than one mint's worst case is refused."""
        self.reporter.info("Testing claim lease bound", context="Test")

        with pytest.raises(ValidationError):
            Settings(**REQUIRED, CLAIM_LEASE_MINUTES=5, RECEIPT_WAIT_TIMEOUT=300)

    def test_default_lease_outlives_submission(self):
        """Test defaults leave headroom over the worst-case submit time."""
        settings = Settings(**REQUIRED)

        assert settings.worst_case_submit_seconds == 300
        assert settings.CLAIM_LEASE_MINUTES * 60 > settings.worst_case_submit_seconds
