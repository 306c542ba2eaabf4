"""
Shared fakes: an in-memory AsyncWeb3 and a scripted relay provider.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

import pytest
import pytest_asyncio
import structlog
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TimeExhausted

from relaying_services.addresses import CONTRACT_ADDRESSES, REGTEST_CHAIN_ID
from relaying_services.config import RelayingServicesConfig
from relaying_services.sdk import RelayingServices

DEV_ACCOUNT = Web3.to_checksum_address("0xcd2a3d9f938e13cd947ec05abc7fe734df8dd826")
WALLET_ADDRESS = "0x1111111111111111111111111111111111111111"
TOKEN_ADDRESS = "0x2222222222222222222222222222222222222222"
RECIPIENT_ADDRESS = "0x3333333333333333333333333333333333333333"
TX_HASH = "0x" + "ab" * 32

REGTEST = CONTRACT_ADDRESSES[REGTEST_CHAIN_ID]

WALLET_CODE = HexBytes("0x6080604052")


async def _value(value: Any) -> Any:
    return value


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


def _hash_key(tx_hash: Any) -> str:
    return tx_hash if isinstance(tx_hash, str) else "0x" + bytes(tx_hash).hex()


class FakeContractFunction:
    def __init__(self, contract: FakeContract, name: str, args: tuple):
        self.contract = contract
        self.name = name
        self.args = args

    async def call(self, *args: Any, **kwargs: Any) -> Any:
        self.contract.calls.append((self.name, self.args))
        handler = self.contract.views.get(self.name)
        if handler is None:
            raise AssertionError(f"unexpected call: {self.name}")
        return handler(*self.args)

    async def build_transaction(self, tx: dict[str, Any]) -> dict[str, Any]:
        self.contract.transactions.append((self.name, self.args))
        revert = self.contract.build_reverts.get(self.name)
        if revert is not None:
            raise revert
        return {
            **tx,
            "to": self.contract.address,
            "data": "0x" + Web3.keccak(text=self.name).hex().removeprefix("0x")[:8],
            "value": 0,
            "gas": 100_000,
            "chainId": REGTEST_CHAIN_ID,
        }


class _Functions:
    def __init__(self, contract: FakeContract):
        self._contract = contract

    def __getattr__(self, name: str) -> Callable[..., FakeContractFunction]:
        return lambda *args: FakeContractFunction(self._contract, name, args)


class FakeContract:
    def __init__(self, address: str, abi: list[dict[str, Any]]):
        self.address = address
        self.abi = abi
        self.views: dict[str, Callable[..., Any]] = {}
        self.build_reverts: dict[str, Exception] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.transactions: list[tuple[str, tuple]] = []
        self.functions = _Functions(self)


class FakeEth:
    """The subset of `AsyncWeb3.eth` used by the SDK."""

    def __init__(self, chain_id: int = REGTEST_CHAIN_ID, accounts: Optional[list[str]] = None):
        self._chain_id = chain_id
        self._accounts = [DEV_ACCOUNT] if accounts is None else accounts
        self._gas_price = 60_000_000

        self.code: dict[str, HexBytes] = {}
        self.contracts: dict[str, FakeContract] = {}
        self.receipts: dict[str, dict[str, Any]] = {}

        self.code_queries: list[str] = []
        self.sent_transactions: list[dict[str, Any]] = []
        self.sent_raw_transactions: list[bytes] = []
        self.eth_calls: list[tuple[dict[str, Any], Any]] = []
        self.receipt_queries: list[str] = []

        # Receipt returned for transactions sent from the SDK
        self.send_receipt: dict[str, Any] = {"status": 1, "blockNumber": 10}
        # Raised by eth_call when replaying a failed transaction
        self.call_error: Optional[Exception] = None
        # Raised while waiting for a receipt
        self.receipt_error: Optional[Exception] = None

    @property
    def chain_id(self) -> Any:
        return _value(self._chain_id)

    @property
    def accounts(self) -> Any:
        return _value(list(self._accounts))

    @property
    def gas_price(self) -> Any:
        return _value(self._gas_price)

    def contract(self, address: str, abi: list[dict[str, Any]]) -> FakeContract:
        address = checksum(address)
        if address not in self.contracts:
            self.contracts[address] = FakeContract(address, abi)
        elif abi:
            self.contracts[address].abi = abi
        return self.contracts[address]

    def contract_at(self, address: str) -> FakeContract:
        """Contract handle a test can script before the SDK binds it."""
        return self.contract(address, [])

    async def get_code(self, address: str) -> HexBytes:
        self.code_queries.append(address)
        return self.code.get(checksum(address), HexBytes("0x"))

    async def get_transaction_count(self, address: str) -> int:
        return len(self.sent_transactions) + len(self.sent_raw_transactions)

    async def send_transaction(self, tx: dict[str, Any]) -> HexBytes:
        self.sent_transactions.append(tx)
        return HexBytes(TX_HASH)

    async def send_raw_transaction(self, raw: bytes) -> HexBytes:
        self.sent_raw_transactions.append(raw)
        return HexBytes(TX_HASH)

    async def wait_for_transaction_receipt(
        self, tx_hash: Any, timeout: float = 120, poll_latency: float = 0.1
    ) -> dict[str, Any]:
        key = _hash_key(tx_hash)
        self.receipt_queries.append(key)
        if self.receipt_error is not None:
            raise self.receipt_error
        if key in self.receipts:
            return self.receipts[key]
        if not (self.sent_transactions or self.sent_raw_transactions):
            # Never mined
            raise TimeExhausted(
                f"Transaction {key} is not in the chain after {timeout} seconds"
            )
        return {**self.send_receipt, "transactionHash": HexBytes(tx_hash)}

    async def call(self, tx: dict[str, Any], block_identifier: Any = None) -> HexBytes:
        self.eth_calls.append((tx, block_identifier))
        if self.call_error is not None:
            raise self.call_error
        return HexBytes("0x")


class FakeWeb3:
    def __init__(self, eth: Optional[FakeEth] = None):
        self.eth = eth or FakeEth()
        self.provider = None


class FakeRelayProvider:
    """Relay provider that records requests and answers from a script."""

    def __init__(self, w3: Any = None, config: Any = None):
        self.w3 = w3
        self.config = config
        self.accounts: list[Any] = []
        self.deploy_envelopes: list[dict[str, Any]] = []
        self.sent: list[dict[str, Any]] = []
        self.estimates: list[tuple[str, Any]] = []

        self.deploy_result: Any = TX_HASH
        self.respond: Callable[[dict[str, Any]], tuple[Any, Any]] = self._respond_ok

        self.gas_price = 65_000_000
        self.max_relay_gas = 150_000
        self.internal_call_cost = 30_000
        self.token_transfer_cost = 20_000

    @staticmethod
    def _respond_ok(payload: dict[str, Any]) -> tuple[Any, Any]:
        return None, {"jsonrpc": "2.0", "id": payload["id"], "result": TX_HASH}

    def add_account(self, account: Any) -> None:
        self.accounts.append(account)

    async def deploy_smart_wallet(self, envelope: dict[str, Any]) -> Any:
        self.deploy_envelopes.append(envelope)
        return self.deploy_result

    def send(self, payload: dict[str, Any], callback: Callable[..., None]) -> None:
        self.sent.append(payload)
        error, result = self.respond(payload)
        callback(error, result)

    async def calculate_gas_price(self) -> int:
        return self.gas_price

    async def estimate_max_possible_relay_gas(self, envelope: dict[str, Any], relay_worker: str) -> int:
        self.estimates.append(("max", envelope, relay_worker))
        return self.max_relay_gas

    async def get_internal_call_cost(self, envelope: dict[str, Any]) -> int:
        self.estimates.append(("internal", envelope))
        return self.internal_call_cost

    async def estimate_token_transfer_gas(self, envelope: dict[str, Any], relay_worker: str) -> int:
        self.estimates.append(("token", envelope, relay_worker))
        return self.token_transfer_cost

    async def estimate_max_possible_relay_gas_with_linear_fit(
        self, internal_call_cost: int, token_transfer_cost: int
    ) -> int:
        return (internal_call_cost + token_transfer_cost) * 2


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_w3() -> FakeWeb3:
    w3 = FakeWeb3()
    factory = w3.eth.contract_at(REGTEST.smart_wallet_factory)
    factory.views["getSmartWalletAddress"] = lambda owner, recoverer, index: checksum(
        "0x" + f"{index + 1:040x}"
    )
    return w3


@pytest.fixture
def relay_provider() -> FakeRelayProvider:
    return FakeRelayProvider()


@pytest_asyncio.fixture
async def services(fake_w3: FakeWeb3, relay_provider: FakeRelayProvider) -> RelayingServices:
    def factory(w3: Any, config: Any) -> FakeRelayProvider:
        relay_provider.w3 = w3
        relay_provider.config = config
        return relay_provider

    sdk = RelayingServices(RelayingServicesConfig(), w3=fake_w3, relay_provider_factory=factory)
    await sdk.initialize()
    return sdk
