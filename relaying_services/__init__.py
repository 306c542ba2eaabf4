"""
Relaying Services SDK

Deploys smart wallets and relays meta-transactions through them, so that
a user can interact with contracts while paying fees in an ERC20 token
instead of the native currency.

Usage:
    # Compute the address of smart wallet #0
    relaying-services generate 0

    # Check whether it is deployed
    relaying-services is-deployed 0x...

    # List the tokens the verifiers accept
    relaying-services allowed-tokens
"""

__version__ = "0.1.0"

from .addresses import CONTRACT_ADDRESSES, ChainAddressSet, load_addresses
from .config import RelayingServicesConfig, Settings
from .configuration import EnvelopingConfig, build_configuration
from .contracts import Contracts
from .errors import (
    AlreadyDeployedError,
    ConfigurationError,
    NotDeployedError,
    RelayingServicesError,
    RelayTransportError,
    RevertedCallError,
)
from .models import (
    DeployOptions,
    RelayGasEstimate,
    RelayGasEstimationOptions,
    RelayTransactionOptions,
    SmartWallet,
)
from .relay_provider import RelayProvider
from .sdk import RelayingServices

__all__ = [
    "__version__",
    "CONTRACT_ADDRESSES",
    "ChainAddressSet",
    "load_addresses",
    "RelayingServicesConfig",
    "Settings",
    "EnvelopingConfig",
    "build_configuration",
    "Contracts",
    "RelayingServicesError",
    "ConfigurationError",
    "AlreadyDeployedError",
    "NotDeployedError",
    "RelayTransportError",
    "RevertedCallError",
    "DeployOptions",
    "RelayGasEstimate",
    "RelayGasEstimationOptions",
    "RelayTransactionOptions",
    "SmartWallet",
    "RelayProvider",
    "RelayingServices",
]
