"""
Lazily built handles for the relaying contracts.
"""

from typing import Any

import structlog
from web3 import AsyncWeb3

from .addresses import ChainAddressSet
from .chain import get_contract

logger = structlog.get_logger()


# Minimal ABIs for the calls the SDK makes
SMART_WALLET_FACTORY_ABI = [
    {
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "recoverer", "type": "address"},
            {"name": "index", "type": "uint256"},
        ],
        "name": "getSmartWalletAddress",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

TOKEN_VERIFIER_ABI = [
    {
        "inputs": [{"name": "token", "type": "address"}],
        "name": "acceptToken",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "token", "type": "address"}],
        "name": "acceptsToken",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getAcceptedTokens",
        "outputs": [{"name": "", "type": "address[]"}],
        "stateMutability": "view",
        "type": "function",
    },
]

RELAY_VERIFIER_ABI = TOKEN_VERIFIER_ABI
DEPLOY_VERIFIER_ABI = TOKEN_VERIFIER_ABI

ERC20_ABI = [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

SMART_WALLET_FACTORY = "smart_wallet_factory"
RELAY_VERIFIER = "smart_wallet_relay_verifier"
DEPLOY_VERIFIER = "smart_wallet_deploy_verifier"

CONTRACT_ABIS = {
    SMART_WALLET_FACTORY: SMART_WALLET_FACTORY_ABI,
    RELAY_VERIFIER: RELAY_VERIFIER_ABI,
    DEPLOY_VERIFIER: DEPLOY_VERIFIER_ABI,
}


class Contracts:
    """
    Contract handles keyed by role, built on first use.

    Building a handle has no side effects, so two concurrent first
    calls may both build one; either result is equivalent.
    """

    def __init__(self, w3: AsyncWeb3, addresses: ChainAddressSet):
        self.w3 = w3
        self.addresses = addresses
        self._handles: dict[str, Any] = {}

    def _get(self, role: str) -> Any:
        handle = self._handles.get(role)
        if handle is None:
            address = getattr(self.addresses, role)
            handle = get_contract(self.w3, CONTRACT_ABIS[role], address)
            self._handles[role] = handle
            logger.debug("contract_handle_created", role=role, address=address)
        return handle

    def get_smart_wallet_factory(self) -> Any:
        return self._get(SMART_WALLET_FACTORY)

    def get_relay_verifier(self) -> Any:
        return self._get(RELAY_VERIFIER)

    def get_deploy_verifier(self) -> Any:
        return self._get(DEPLOY_VERIFIER)

    def preload(self) -> None:
        """Build every role handle now so construction errors surface early."""
        for role in CONTRACT_ABIS:
            self._get(role)

    def get_token(self, address: str) -> Any:
        """ERC20 handle for a payment token."""
        return get_contract(self.w3, ERC20_ABI, address)
