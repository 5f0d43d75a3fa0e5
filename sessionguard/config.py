from decimal import Decimal
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="auto",
        pattern="^(auto|json|console)$",
        description="json, console, or auto (console only at DEBUG)",
    )

    # Upstream session manager
    upstream_base_url: str = Field(
        default="http://127.0.0.1:3001",
        description="Base URL of the trading-session manager API",
    )
    upstream_api_key: str = Field(default="", description="API key sent to the session manager")
    request_timeout_seconds: int = Field(default=30, ge=1, description="Upstream request timeout")

    # Recovery
    recovery_dust_threshold_sol: Decimal = Field(
        default=Decimal("0.001"),
        ge=0,
        description="Balance at or below which a wallet is not worth sweeping (covers rent and fee residue)",
    )
    refresh_live_balances: bool = Field(
        default=True,
        description="Query on-chain balances instead of trusting ledger balances",
    )
    sweep_max_attempts: int = Field(
        default=1,
        ge=1,
        description="Transfer attempts per wallet within one sweep call",
    )
    sweep_retry_initial_delay_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Delay before the second transfer attempt",
    )
    sweep_retry_max_delay_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Upper bound on the delay between transfer attempts",
    )
    sweep_max_concurrency: int = Field(
        default=4,
        ge=1,
        description="Maximum wallets swept concurrently within one sweep",
    )
    sweep_settle_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay before the post-sweep status refresh",
    )

    # Stranded wallet monitor
    stranded_monitor_enabled: bool = Field(
        default=False,
        description="Periodically sweep sessions with stranded ephemeral wallets",
    )
    stranded_monitor_interval_seconds: int = Field(
        default=300,
        ge=1,
        description="Seconds between stranded wallet checks",
    )
    stranded_wallet_min_age_seconds: int = Field(
        default=300,
        ge=0,
        description="Only recover wallets created at least this long ago",
    )

    @property
    def has_upstream_key(self) -> bool:
        return bool(self.upstream_api_key)


# Global settings instance
settings = Settings()
