"""
Configuration management for the relaying services SDK.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .addresses import load_address_file


class Settings(BaseSettings):
    """
    Environment-based settings.

    All settings can be overridden via environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Chain
    rsk_host: str = Field(default="http://localhost:4444", description="RSK node RPC URL")
    private_key: Optional[str] = Field(
        default=None,
        description="Signing account key (node accounts are used when unset)",
    )

    # Logging
    log_level: Optional[str] = Field(
        default=None,
        description="Verbosity 0 (debug) to 5 (none); invalid values fall back to 2",
    )
    json_logs: bool = Field(default=False, description="Render logs as JSON")

    # Relaying
    preferred_relays: Optional[list[str]] = Field(
        default=None, description="Relay server URLs (JSON list)"
    )
    only_preferred_relays: Optional[bool] = Field(default=None)
    relay_hub_address: Optional[str] = Field(default=None)
    relay_server_timeout: float = Field(
        default=10.0, description="Timeout in seconds for relay server queries"
    )
    receipt_timeout: float = Field(
        default=120.0, description="Seconds to wait for a relayed transaction to be mined"
    )

    # Contracts
    contract_addresses_file: Optional[Path] = Field(
        default=None,
        description="JSON file with contract address overrides",
    )


@dataclass
class RelayingServicesConfig:
    """Everything the SDK needs, passed explicitly at construction."""

    settings: Settings = field(default_factory=Settings)
    # Overrides for the enveloping configuration defaults
    enveloping_config: dict[str, Any] = field(default_factory=dict)
    # Overrides for the registry contract addresses
    contract_addresses: Optional[dict[str, str]] = None
    account: Optional[LocalAccount] = None

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "RelayingServicesConfig":
        """Load configuration from environment."""
        settings = Settings(_env_file=env_path) if env_path else Settings()

        account = Account.from_key(settings.private_key) if settings.private_key else None

        enveloping_config = {
            key: value
            for key, value in (
                ("preferred_relays", settings.preferred_relays),
                ("only_preferred_relays", settings.only_preferred_relays),
                ("relay_hub_address", settings.relay_hub_address),
            )
            if value is not None
        }

        contract_addresses = (
            load_address_file(settings.contract_addresses_file)
            if settings.contract_addresses_file
            else None
        )

        return cls(
            settings=settings,
            enveloping_config=enveloping_config,
            contract_addresses=contract_addresses,
            account=account,
        )
