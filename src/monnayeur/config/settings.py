"""
Application settings with environment-based configuration.

Priority (highest to lowest):
1. Environment variables (from .env.<env> or system)
2. Environment-specific YAML config file (development.yaml, production.yaml)
3. Default YAML config file (default.yaml)
4. Pydantic defaults
"""

import os
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# RPC round trips one mint may make before broadcast: decimals, nonce,
# gas estimate, fee data, block, broadcast
SUBMIT_RPC_CALLS = 6


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Secrets (minter key, admin key, database password) belong in the
    environment, not in YAML files.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Application
    APP_NAME: str = "Monnayeur"
    APP_VERSION: str = "0.1.0"
    ENV: str = Field(default="development", description="Environment name")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # API Server
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000, ge=1024, le=65535)
    CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )
    ADMIN_API_KEY: Optional[str] = Field(
        default=None,
        description="Shared key for admin routes (X-Admin-Key header)",
    )

    # Database (from environment - REQUIRED in production)
    DATABASE_URL: str = Field(..., description="Database connection URL")
    DATABASE_ECHO: bool = Field(default=False)
    DATABASE_CREATE_TABLES: bool = Field(
        default=False,
        description="Create tables on startup instead of running migrations",
    )

    # Chain / Token contract (from environment - REQUIRED in production)
    CHAIN_RPC_URL: str = Field(..., description="EVM JSON-RPC URL")
    CHAIN_ID: Optional[int] = Field(default=None, description="EIP-155 chain id")
    TOKEN_CONTRACT_ADDRESS: str = Field(..., description="Mintable token address")
    MINTER_PRIVATE_KEY: Optional[str] = Field(
        default=None,
        description="Private key of the minter account",
    )
    EXPLORER_URL: str = Field(default="https://polygonscan.com")
    RPC_REQUEST_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for a single RPC request in seconds",
    )
    RECEIPT_WAIT_TIMEOUT: float = Field(
        default=120.0,
        gt=0,
        description="How long mint waits for inclusion before reporting pending",
    )
    RECEIPT_POLL_INTERVAL: float = Field(default=2.0, gt=0)

    # Claim pipeline
    MINT_AMOUNT: Decimal = Field(default=Decimal("2"), gt=0)
    CLAIM_RESPONSE_TIMEOUT: float = Field(
        default=60.0,
        gt=0,
        description="Seconds a claim caller waits before getting 'pending'",
    )
    PENDING_TIMEOUT_MINUTES: int = Field(
        default=30,
        ge=1,
        description="Age after which a pending claim becomes timeout",
    )
    CLAIM_LEASE_MINUTES: int = Field(
        default=10,
        ge=1,
        description="Age after which an unsubmitted pending claim is retaken",
    )

    # Reconciliation sweeper
    SWEEP_INTERVAL_SECONDS: float = Field(default=60.0, gt=0)
    SWEEP_CONCURRENCY: int = Field(default=10, ge=1)
    LEDGER_CALL_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="Per-record ledger lookup timeout in background jobs",
    )

    # Batch scheduler
    BATCH_INTERVAL_MINUTES: float = Field(default=30.0, gt=0)
    BATCH_SIZE: int = Field(default=50, ge=1, le=500)
    BATCH_SKIP_BALANCE_CHECK: bool = Field(default=False)
    SYNC_ON_STARTUP: bool = Field(default=True)
    SCHEDULER_ENABLED: bool = Field(default=True)

    # Referral bonus
    REFERRAL_ENABLED: bool = Field(default=True)
    REFERRAL_BONUS_TYPE: str = Field(default="fixed")
    REFERRAL_BONUS_AMOUNT: Decimal = Field(default=Decimal("2"), ge=0)
    REFERRAL_BONUS_PERCENT: Decimal = Field(default=Decimal("10"), ge=0, le=100)
    REFERRAL_SILENT_BONUS_AMOUNT: Decimal = Field(default=Decimal("1"), ge=0)
    REFERRAL_FALLBACK_ADDRESS: Optional[str] = Field(
        default="0xdd4104a780142efb9566659f26d3317714a81510",
        description="Beneficiary of silent bonuses for unreferred claims",
    )

    # Resilience - Circuit Breaker
    CB_FAILURE_THRESHOLD: int = Field(
        default=5,
        description="Circuit breaker failure threshold",
    )
    CB_TIMEOUT_SECONDS: float = Field(
        default=60.0,
        description="Circuit breaker open state timeout",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_JSON: bool = Field(default=True)

    # Observability - Metrics
    METRICS_ENABLED: bool = Field(
        default=True,
        description="Expose Prometheus metrics at /metrics",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Invalid LOG_LEVEL. Must be one of: {allowed}")
        return v_upper

    @field_validator("REFERRAL_BONUS_TYPE")
    @classmethod
    def validate_bonus_type(cls, v: str) -> str:
        """Validate referral bonus type."""
        allowed = ["fixed", "percentage"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"Invalid REFERRAL_BONUS_TYPE. Must be one of: {allowed}")
        return v_lower

    @field_validator("EXPLORER_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def worst_case_submit_seconds(self) -> float:
        """Longest a single mint can take from nonce lookup to receipt."""
        return SUBMIT_RPC_CALLS * self.RPC_REQUEST_TIMEOUT + self.RECEIPT_WAIT_TIMEOUT

    @model_validator(mode="after")
    def validate_claim_lease(self) -> "Settings":
        """Require the claim lease to outlive one submission."""
        if self.CLAIM_LEASE_MINUTES * 60 <= self.worst_case_submit_seconds:
            raise ValueError(
                f"CLAIM_LEASE_MINUTES ({self.CLAIM_LEASE_MINUTES}) must exceed the "
                f"worst-case submit time of {self.worst_case_submit_seconds:.0f}s"
            )
        return self


def load_config(
    config_file: Optional[str] = None,
    env_file: Optional[str] = None,
    env: Optional[str] = None,
) -> Settings:
    """
    Load configuration from YAML files and environment variables.

    Priority: ENV vars > environment-specific YAML > default YAML > defaults

    Args:
        config_file: Optional YAML config filename override
        env_file: Optional .env filename (e.g., ".env.development")
        env: Optional environment name override (e.g., "development", "test")

    Returns:
        Settings instance

    Raises:
        ValidationError: If required fields are missing
    """
    current_file = Path(__file__).resolve()
    project_root = current_file.parent.parent.parent.parent
    config_dir = project_root / "config"

    environment = env or os.getenv("ENV", "production")

    env_map = {
        "production": (".env.production", "production.yaml"),
        "development": (".env.development", "development.yaml"),
        "test": (".env.test", "test.yaml"),
    }

    if env_file is None:
        default_env_file, default_config_file = env_map.get(
            environment, (".env.production", "production.yaml")
        )
        env_file = default_env_file
        if config_file is None:
            config_file = default_config_file

    env_file_path = project_root / env_file
    if env_file_path.exists():
        load_dotenv(env_file_path, override=True)

    default_config_path = config_dir / "default.yaml"
    merged_config = {}

    if default_config_path.exists():
        with open(default_config_path, "r") as f:
            loaded = yaml.safe_load(f)
            if loaded:
                merged_config = loaded

    if config_file:
        env_config_path = config_dir / config_file
        if env_config_path.exists():
            with open(env_config_path, "r") as f:
                loaded = yaml.safe_load(f)
                if loaded:
                    merged_config.update(loaded)

    # Init kwargs outrank the environment in pydantic-settings
    yaml_values = {k: v for k, v in merged_config.items() if k not in os.environ}
    return Settings(**yaml_values)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or initialize global settings singleton."""
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings


def override_settings(new_settings: Settings) -> None:
    """Override global settings (for testing)."""
    global _settings
    _settings = new_settings


def reset_settings() -> None:
    """Reset settings to force re-initialization (for testing)."""
    global _settings
    _settings = None
