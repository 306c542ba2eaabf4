"""
Domain models: smart wallets, relay envelopes and per-operation options.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from web3 import Web3


@dataclass
class SmartWallet:
    """A smart wallet, generated and possibly deployed."""

    index: int
    address: str
    deployed: bool = False
    # Transaction hash or receipt, depending on what the relay provider returns
    deploy_transaction: Optional[Any] = None
    # Token used to pay for the deployment; default payment token afterwards
    token_address: Optional[str] = None


@dataclass
class RelayGasEstimate:
    """Gas units returned by the relay provider priced at the current gas price."""

    gas: int
    gas_price: int

    @property
    def cost_wei(self) -> int:
        return self.gas * self.gas_price

    @property
    def cost(self) -> Decimal:
        """Cost in native currency units."""
        return Web3.from_wei(self.cost_wei, "ether")


class RelayEnvelope(BaseModel):
    """Payload handed to the relay provider for a deploy or a forwarded call."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    from_address: str = Field(..., alias="from")
    to: str
    data: str = "0x"
    value: Union[int, str] = 0
    gas: Optional[Union[int, str]] = None
    gas_price: Optional[Union[int, str]] = None
    call_verifier: str
    call_forwarder: str
    relay_hub: Optional[str] = None
    token_contract: str
    token_amount: str
    only_preferred_relays: bool = True
    is_smart_wallet_deploy: bool = False

    # Deploy only
    index: Optional[str] = None
    recoverer: Optional[str] = None
    smart_wallet_address: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Wire form: camelCase keys, unset fields dropped."""
        return self.model_dump(by_alias=True, exclude_none=True)


class DeployOptions(BaseModel):
    """Options for deploying a smart wallet."""

    token_address: Optional[str] = Field(None, description="ERC20 paying for the deploy")
    token_amount: Decimal = Field(Decimal(0), ge=0, description="Fee in whole tokens")
    call_verifier: Optional[str] = Field(None, description="Defaults to the deploy verifier")
    call_forwarder: Optional[str] = Field(None, description="Defaults to the factory")
    recoverer: Optional[str] = Field(None, description="Defaults to the zero address")
    only_preferred_relays: bool = True


class RelayTransactionOptions(BaseModel):
    """Options for relaying a call through a deployed smart wallet."""

    unsigned_tx: dict[str, Any] = Field(..., description="Call to relay: to, data, value, gas")
    smart_wallet: SmartWallet
    token_amount: Decimal = Field(Decimal(0), ge=0, description="Fee in whole tokens")
    token_address: Optional[str] = Field(
        None, description="Defaults to the token the wallet was deployed with"
    )
    call_verifier: Optional[str] = Field(None, description="Defaults to the relay verifier")
    relay_hub: Optional[str] = Field(None, description="Defaults to the configured relay hub")
    only_preferred_relays: bool = True


class RelayGasEstimationOptions(BaseModel):
    """Options for estimating the cost of a relayed deploy or call."""

    smart_wallet_address: str
    destination_contract: Optional[str] = Field(None, description="Call target (relay only)")
    abi_encoded_tx: str = Field("0x", description="Call data (relay only)")
    value: int = 0
    token_address: Optional[str] = None
    token_fees: Decimal = Field(Decimal(0), ge=0, description="Fee in whole tokens")
    relay_worker: Optional[str] = Field(
        None, description="Defaults to the worker of the first preferred relay"
    )
    is_smart_wallet_deploy: bool = False
    index: int = Field(0, ge=0, description="Smart wallet index (deploy only)")
    call_verifier: Optional[str] = None
    call_forwarder: Optional[str] = None
    only_preferred_relays: bool = True
