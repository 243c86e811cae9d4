"""Application configuration using pydantic-settings.

Network selection (endpoints, passphrase, contract) is fixed at startup.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")
    log_level: str = Field(default="INFO", description="Log level when debug is off")

    # ======================
    # Network
    # ======================
    horizon_url: str = Field(
        default="https://horizon-testnet.stellar.org",
        description="Horizon URL (account state)",
    )
    soroban_rpc_url: str = Field(
        default="https://soroban-testnet.stellar.org",
        description="Soroban RPC URL (simulate, send, status)",
    )
    network_passphrase: str = Field(
        default="Test SDF Network ; September 2015",
        description="Network passphrase",
    )
    network_label: str = Field(default="TESTNET", description="Network name given to signers")
    contract_id: str = Field(
        default="CBK7OZFRWQ35O6WDNRLF4QLIRJYLTG37FGL5XXC3OHQNZ742IF264ZNL",
        description="lumen_split contract address",
    )
    http_timeout: float = Field(default=30.0, description="HTTP timeout in seconds")

    # ======================
    # Transactions
    # ======================
    base_fee: int = Field(default=100, description="Base fee in stroops")
    tx_timeout_seconds: int = Field(default=30, description="Transaction validity window")
    confirm_poll_interval: float = Field(
        default=0.15, description="Delay between confirmation polls in seconds"
    )
    confirm_max_attempts: int = Field(
        default=100, description="Confirmation polls before giving up"
    )
    read_source_account: Optional[str] = Field(
        default=None, description="Stub source account for read simulations"
    )

    # ======================
    # Signers
    # ======================
    signer_backend: str = Field(
        default="", description="extension, web_intent or local (empty = auto-detect)"
    )
    extension_bridge_url: str = Field(
        default="http://127.0.0.1:4321", description="Wallet extension bridge URL"
    )
    web_intent_url: str = Field(
        default="https://albedo.link", description="Web-intent signing service URL"
    )
    local_secret_key: Optional[str] = Field(
        default=None, description="Secret seed for the local signer (development only)"
    )

    @property
    def web_intent_network(self) -> str:
        """Network name in the form web-intent services expect."""
        return self.network_label.lower()

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "network": {
                "label": self.network_label,
                "passphrase": self.network_passphrase,
                "horizon": self.horizon_url,
                "soroban_rpc": self.soroban_rpc_url,
                "contract_id": self.contract_id,
            },
            "transactions": {
                "base_fee": self.base_fee,
                "timeout": self.tx_timeout_seconds,
                "poll_interval": self.confirm_poll_interval,
                "max_attempts": self.confirm_max_attempts,
            },
            "signer": {
                "backend": self.signer_backend or "(auto)",
                "extension_bridge": self.extension_bridge_url,
                "web_intent": self.web_intent_url,
                "local_secret_key": "***" if self.local_secret_key else "(not set)",
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
