"""
Per-chain registry of the relaying contracts.
"""

import json
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel, to_snake

from .errors import ConfigurationError

logger = structlog.get_logger()

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

REGTEST_CHAIN_ID = 33


class ChainAddressSet(BaseModel):
    """Addresses of the relaying contracts deployed on one chain."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    penalizer: str
    relay_hub: str
    smart_wallet: str
    smart_wallet_factory: str
    smart_wallet_deploy_verifier: str
    smart_wallet_relay_verifier: str
    custom_smart_wallet: str
    custom_smart_wallet_factory: str
    custom_smart_wallet_deploy_verifier: str
    custom_smart_wallet_relay_verifier: str
    sample_recipient: str
    test_token: str


AddressOverrides = Union[ChainAddressSet, Mapping[str, Optional[str]]]


# Deterministic addresses of a fresh local deployment on regtest
CONTRACT_ADDRESSES: dict[int, ChainAddressSet] = {
    REGTEST_CHAIN_ID: ChainAddressSet(
        penalizer="0xe8c7ad30ae9b5cca3fd4a8e3a2df1addb5d6d9b2",
        relay_hub="0x3ba95e1cccd397b5124bcdcc5bf0952114e6a701",
        smart_wallet="0x1af2844a588759d0de58abd568add96bb8b3b6d8",
        smart_wallet_factory="0xe0825f57dd05ef62ff731c27222a86e104cc4cad",
        smart_wallet_deploy_verifier="0x73ec81da0c72dd112e06c09a6ec03b5544d26f05",
        smart_wallet_relay_verifier="0x03f23ae1917722d5a27a2ea0bcc98725a2a2a49a",
        custom_smart_wallet="0xdac5481925a298b95bf5b54c35b68fc6fc2ef423",
        custom_smart_wallet_factory="0x1eb5a2713daa8ea706e55ea5f6ae8d27ff7f98f1",
        custom_smart_wallet_deploy_verifier="0x5159345aab821172e795d56274d0f5fdfdc6abd9",
        custom_smart_wallet_relay_verifier="0x00bb8b0e6b5cd1a28b2fa7a13d6c2f3dc3c1df85",
        sample_recipient="0x4e8c0b4a0a4a3dd0e1b15e4c3ef1a77d1c9a16a4",
        test_token="0x1ab7f1e1b1c21c3ab5c8e6b7ba0b1f6aa8b4b1c6",
    ),
}


def _normalize(overrides: AddressOverrides) -> dict[str, Any]:
    if isinstance(overrides, ChainAddressSet):
        return overrides.model_dump()
    return {to_snake(key): value for key, value in overrides.items()}


def resolve_addresses(chain_id: int) -> ChainAddressSet:
    """Look up the registered address set for a chain."""
    addresses = CONTRACT_ADDRESSES.get(int(chain_id))
    if addresses is None:
        raise ConfigurationError(f"No contract addresses registered for chain id {chain_id}")
    return addresses


def merge_addresses(
    overrides: Optional[AddressOverrides], defaults: ChainAddressSet
) -> ChainAddressSet:
    """
    Shallow field-by-field merge.

    A field's override wins when it is present and non-empty,
    otherwise the default is kept. Override values are not validated.
    """
    if not overrides:
        return defaults

    values = _normalize(overrides)
    merged = {
        name: values.get(name) or getattr(defaults, name)
        for name in ChainAddressSet.model_fields
    }
    return ChainAddressSet(**merged)


def load_addresses(
    chain_id: int, overrides: Optional[AddressOverrides] = None
) -> ChainAddressSet:
    """
    Registry defaults for a chain merged with caller overrides.

    Chains without a registry entry need a complete override set.
    """
    if int(chain_id) in CONTRACT_ADDRESSES:
        return merge_addresses(overrides, resolve_addresses(chain_id))

    if not overrides:
        raise ConfigurationError(f"No contract addresses registered for chain id {chain_id}")

    values = {key: value for key, value in _normalize(overrides).items() if value}
    missing = [name for name in ChainAddressSet.model_fields if name not in values]
    if missing:
        raise ConfigurationError(
            f"Missing contract addresses for chain id {chain_id}: {', '.join(missing)}"
        )

    try:
        return ChainAddressSet(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid contract addresses for chain id {chain_id}: {e}") from e


def load_address_file(path: Path) -> dict[str, str]:
    """Read address overrides from a JSON object file."""
    with open(path) as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ConfigurationError(f"Contract address file {path} must contain a JSON object")

    logger.debug("contract_address_file_loaded", path=str(path), fields=len(data))
    return {to_snake(key): value for key, value in data.items()}
