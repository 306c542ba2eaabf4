"""
Enveloping configuration: defaults, merge and resolution.
"""

from typing import Any, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel, to_snake

from .addresses import ZERO_ADDRESS, ChainAddressSet
from .relay_provider import ConfigurationResolver

logger = structlog.get_logger()

DEFAULT_PREFERRED_RELAYS = ["http://localhost:8090"]
DEFAULT_RELAY_LOOKUP_WINDOW_BLOCKS = 100_000


class EnvelopingConfig(BaseModel):
    """
    Resolved configuration consumed by the relay provider.

    Unknown keys are kept so that parameters negotiated by a
    resolver survive validation.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="allow")

    chain_id: int
    relay_hub_address: str = ZERO_ADDRESS
    relay_verifier_address: str = ZERO_ADDRESS
    deploy_verifier_address: str = ZERO_ADDRESS
    smart_wallet_factory_address: str = ZERO_ADDRESS
    preferred_relays: list[str] = Field(default_factory=list)
    only_preferred_relays: bool = False
    gas_price_factor_percent: int = 0
    relay_lookup_window_blocks: int = DEFAULT_RELAY_LOOKUP_WINDOW_BLOCKS

    # Relay client protocol parameters
    min_gas_price: int = 60_000_000
    max_relay_nonce_gap: int = 3
    relay_timeout_grace_sec: int = 1800
    sliding_window_size: int = 3
    client_id: str = "1"


def _normalize_keys(values: Mapping[str, Any]) -> dict[str, Any]:
    return {to_snake(key): value for key, value in values.items()}


def merge_configuration(
    overrides: Optional[Mapping[str, Any]], defaults: Mapping[str, Any]
) -> dict[str, Any]:
    """Shallow merge: an override replaces the default for its key unless it is None."""
    merged = _normalize_keys(defaults)
    for key, value in _normalize_keys(overrides or {}).items():
        if value is not None:
            merged[key] = value
    return merged


async def resolve_configuration(provider: Any, partial: Mapping[str, Any]) -> EnvelopingConfig:
    """
    Local resolver: validate the partial configuration and fill
    the relay client protocol defaults.
    """
    return EnvelopingConfig.model_validate(_normalize_keys(partial))


async def build_configuration(
    overrides: Optional[Mapping[str, Any]],
    *,
    chain_id: int,
    addresses: ChainAddressSet,
    provider: Any = None,
    resolver: ConfigurationResolver = resolve_configuration,
) -> EnvelopingConfig:
    """
    Merge caller overrides with the required defaults and resolve them.

    The relay hub address is applied after resolution so that a partial
    override never drops it.
    """
    overrides = _normalize_keys(overrides or {})
    defaults = {
        "only_preferred_relays": True,
        "preferred_relays": list(DEFAULT_PREFERRED_RELAYS),
        "gas_price_factor_percent": 0,
        "relay_lookup_window_blocks": DEFAULT_RELAY_LOOKUP_WINDOW_BLOCKS,
        "chain_id": chain_id,
        "relay_verifier_address": addresses.smart_wallet_relay_verifier,
        "deploy_verifier_address": addresses.smart_wallet_deploy_verifier,
        "smart_wallet_factory_address": addresses.smart_wallet_factory,
    }

    partial = merge_configuration(overrides, defaults)
    resolved = await resolver(provider, partial)

    relay_hub_address = overrides.get("relay_hub_address") or addresses.relay_hub
    config = resolved.model_copy(update={"relay_hub_address": relay_hub_address})

    logger.debug(
        "enveloping_config_resolved",
        chain_id=config.chain_id,
        relay_hub=config.relay_hub_address,
        preferred_relays=config.preferred_relays,
        only_preferred_relays=config.only_preferred_relays,
    )
    return config
