"""
Interfaces of the relay network collaborators.

The relay provider signs and submits meta-transactions and picks relays;
the configuration resolver negotiates protocol parameters. Both live
outside this SDK and are plugged in at construction time.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Optional, Protocol, Union

if TYPE_CHECKING:
    from web3 import AsyncWeb3

    from .configuration import EnvelopingConfig

# (error, result); exactly one of them is set
RelayCallback = Callable[[Optional[Any], Optional[Any]], None]


class RelayProvider(Protocol):
    """What the SDK needs from a relay provider."""

    def add_account(self, account: Any) -> None:
        """Register a local signing account."""
        ...

    async def deploy_smart_wallet(self, envelope: dict[str, Any]) -> Union[str, dict[str, Any]]:
        """Relay a smart wallet deployment; returns a transaction hash or receipt."""
        ...

    def send(self, payload: dict[str, Any], callback: RelayCallback) -> None:
        """Handle a JSON-RPC request and report through `callback`."""
        ...

    async def calculate_gas_price(self) -> int:
        ...

    async def estimate_max_possible_relay_gas(
        self, envelope: dict[str, Any], relay_worker: str
    ) -> int:
        ...

    async def get_internal_call_cost(self, envelope: dict[str, Any]) -> int:
        ...

    async def estimate_token_transfer_gas(
        self, envelope: dict[str, Any], relay_worker: str
    ) -> int:
        ...

    async def estimate_max_possible_relay_gas_with_linear_fit(
        self, internal_call_cost: int, token_transfer_cost: int
    ) -> int:
        ...


RelayProviderFactory = Callable[["AsyncWeb3", "EnvelopingConfig"], RelayProvider]

ConfigurationResolver = Callable[[Any, Mapping[str, Any]], Awaitable["EnvelopingConfig"]]


def build_send_transaction_payload(request_id: int, envelope: dict[str, Any]) -> dict[str, Any]:
    """JSON-RPC request carrying a relay envelope."""
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "eth_sendTransaction",
        "params": [envelope],
    }


async def send_request(provider: RelayProvider, payload: dict[str, Any]) -> tuple[Any, Any]:
    """
    Await a callback-style `provider.send`.

    Returns `(error, result)` exactly as reported by the first callback
    invocation; later invocations are ignored. The callback may run on
    another thread.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _settle(error: Any, result: Any) -> None:
        if not future.done():
            future.set_result((error, result))

    def callback(error: Optional[Any] = None, result: Optional[Any] = None) -> None:
        loop.call_soon_threadsafe(_settle, error, result)

    try:
        provider.send(payload, callback)
    except Exception as e:
        # A provider that raises instead of calling back
        loop.call_soon(_settle, e, None)

    return await future
