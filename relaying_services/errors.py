"""
Error types raised by the relaying services SDK.
"""

from typing import Optional


class RelayingServicesError(Exception):
    """Base class for SDK errors."""


class ConfigurationError(RelayingServicesError):
    """Missing or unresolvable configuration (chain addresses, provider, account)."""


class AlreadyDeployedError(RelayingServicesError):
    """A deploy was requested for a smart wallet that already has code."""

    def __init__(self, address: str):
        self.address = address
        super().__init__("Smart Wallet already deployed")


class NotDeployedError(RelayingServicesError):
    """A relay was requested through a smart wallet that has no code."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(
            f"Smart Wallet is not deployed or the address {address} is not a smart wallet."
        )


class RelayTransportError(RelayingServicesError):
    """The relay provider reported an error or the relayed call did not succeed."""

    def __init__(self, message: str, receipt: Optional[dict] = None):
        self.receipt = receipt
        super().__init__(message)


class RevertedCallError(RelayingServicesError):
    """A direct contract call reverted on-chain."""

    def __init__(self, reason: str, tx_hash: Optional[str] = None):
        self.reason = reason
        self.tx_hash = tx_hash
        message = f"Transaction reverted: {reason}"
        if tx_hash:
            message = f"{message} (tx {tx_hash})"
        super().__init__(message)
