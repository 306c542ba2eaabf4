"""
Relaying core: smart wallet lifecycle, relayed calls and token allowance.
"""

from typing import Any, Mapping, Optional, Union

import structlog
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import (
    ContractLogicError,
    TimeExhausted,
    TransactionNotFound,
    Web3Exception,
)

from .addresses import ZERO_ADDRESS, AddressOverrides, load_addresses
from .chain import address_has_code, decode_revert_reason, tokens_to_wei
from .config import RelayingServicesConfig
from .configuration import EnvelopingConfig, build_configuration, resolve_configuration
from .contracts import Contracts
from .errors import (
    AlreadyDeployedError,
    ConfigurationError,
    NotDeployedError,
    RelayTransportError,
    RevertedCallError,
)
from .models import (
    DeployOptions,
    RelayEnvelope,
    RelayGasEstimate,
    RelayGasEstimationOptions,
    RelayTransactionOptions,
    SmartWallet,
)
from .relay_provider import (
    ConfigurationResolver,
    RelayProvider,
    RelayProviderFactory,
    build_send_transaction_payload,
    send_request,
)
from .relay_server import get_relay_worker

logger = structlog.get_logger()

CANNOT_GET_REASON = "cannot get reason"

# A local signer or the address of a node-managed account
Sender = Union[LocalAccount, str]


def _hex(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def _describe_transaction(transaction: Any) -> Any:
    """Loggable form of a transaction hash or receipt."""
    if isinstance(transaction, Mapping):
        return _hex(transaction.get("transactionHash"))
    return _hex(transaction)


class RelayingServices:
    """
    Deploy smart wallets and relay transactions through them.

    Workflow:
    1. `initialize()` resolves contract addresses and the enveloping config
    2. `generate_smart_wallet()` computes a wallet address
    3. `deploy_smart_wallet()` deploys it through the relay network
    4. `relay_transaction()` forwards calls through the deployed wallet
    """

    def __init__(
        self,
        config: Optional[RelayingServicesConfig] = None,
        w3: Optional[AsyncWeb3] = None,
        relay_provider_factory: Optional[RelayProviderFactory] = None,
        configuration_resolver: ConfigurationResolver = resolve_configuration,
    ):
        self.config = config or RelayingServicesConfig()
        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider(self.config.settings.rsk_host))
        self.account = self.config.account

        self._relay_provider_factory = relay_provider_factory
        self._configuration_resolver = configuration_resolver

        self.development_accounts: list[str] = []
        self.contracts: Optional[Contracts] = None
        self.enveloping_config: Optional[EnvelopingConfig] = None
        self.relay_provider: Optional[RelayProvider] = None
        self._request_id = 0

    async def initialize(
        self,
        enveloping_config: Optional[Mapping[str, Any]] = None,
        contract_addresses: Optional[AddressOverrides] = None,
    ) -> None:
        """
        Resolve addresses, contract handles, configuration and relay provider.

        Args:
            enveloping_config: Overrides for the enveloping configuration
                defaults (defaults to the ones in the SDK config)
            contract_addresses: Overrides for the registry addresses

        Raises:
            ConfigurationError: If the chain has no usable address set
        """
        if enveloping_config is None:
            enveloping_config = self.config.enveloping_config
        if contract_addresses is None:
            contract_addresses = self.config.contract_addresses

        self.development_accounts = list(await self.w3.eth.accounts)

        chain_id = await self.w3.eth.chain_id
        addresses = load_addresses(chain_id, contract_addresses)

        contracts = Contracts(self.w3, addresses)
        contracts.preload()
        self.contracts = contracts

        self.enveloping_config = await build_configuration(
            enveloping_config,
            chain_id=chain_id,
            addresses=addresses,
            provider=self.w3.provider,
            resolver=self._configuration_resolver,
        )

        if self._relay_provider_factory is not None:
            provider = self._relay_provider_factory(self.w3, self.enveloping_config)
            if self.account is not None:
                provider.add_account(self.account)
            self.relay_provider = provider
        else:
            logger.warning(
                "relay_provider_not_configured",
                message="deploy, relay and estimation operations are unavailable",
            )

        logger.info(
            "relaying_services_initialized",
            chain_id=chain_id,
            relay_hub=self.enveloping_config.relay_hub_address,
            factory=addresses.smart_wallet_factory,
            relay_provider=self.relay_provider is not None,
        )

    def get_account_address(self) -> str:
        """Address of the SDK account, or the first node account."""
        if self.account is not None:
            return self.account.address
        if self.development_accounts:
            return self.development_accounts[0]
        raise ConfigurationError(
            "No account available: configure a private key or use a node with unlocked accounts"
        )

    def _require_contracts(self) -> Contracts:
        if self.contracts is None or self.enveloping_config is None:
            raise ConfigurationError("RelayingServices is not initialized; call initialize() first")
        return self.contracts

    def _require_relay_provider(self) -> RelayProvider:
        self._require_contracts()
        if self.relay_provider is None:
            raise ConfigurationError("Relay provider not configured")
        return self.relay_provider

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    # ------------------------------------------------------------------
    # Smart wallets
    # ------------------------------------------------------------------

    async def generate_smart_wallet(self, index: int) -> SmartWallet:
        """
        Compute the smart wallet address for `index`.

        The address is a pure function of (owner, zero recoverer, index),
        so the same index always yields the same wallet. Nothing is written.
        """
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise ValueError(f"Smart wallet index must be a non-negative integer, got {index!r}")

        contracts = self._require_contracts()
        owner = Web3.to_checksum_address(self.get_account_address())

        factory = contracts.get_smart_wallet_factory()
        address = await factory.functions.getSmartWalletAddress(owner, ZERO_ADDRESS, index).call()

        logger.debug("smart_wallet_generated", index=index, address=address, owner=owner)
        return SmartWallet(index=index, address=address)

    async def is_smart_wallet_deployed(self, address: str) -> bool:
        """Whether a smart wallet has code at `address`."""
        return await address_has_code(self.w3, address)

    async def deploy_smart_wallet(
        self, smart_wallet: SmartWallet, options: Optional[DeployOptions] = None
    ) -> SmartWallet:
        """
        Deploy a generated smart wallet through the relay provider.

        Returns the same wallet marked as deployed, with the transaction
        handle returned by the provider and the payment token.

        Raises:
            AlreadyDeployedError: If the wallet address already has code
        """
        options = options or DeployOptions()
        provider = self._require_relay_provider()
        addresses = self._require_contracts().addresses

        logger.debug("checking_smart_wallet_exists", address=smart_wallet.address)
        if await address_has_code(self.w3, smart_wallet.address):
            raise AlreadyDeployedError(smart_wallet.address)

        if options.token_address:
            await self._check_deploy_balance(options.token_address, smart_wallet.address)

        envelope = RelayEnvelope(
            from_address=self.get_account_address(),
            to=ZERO_ADDRESS,
            data="0x",
            value=0,
            call_verifier=options.call_verifier or addresses.smart_wallet_deploy_verifier,
            call_forwarder=options.call_forwarder or addresses.smart_wallet_factory,
            relay_hub=self.enveloping_config.relay_hub_address,
            token_contract=options.token_address or ZERO_ADDRESS,
            token_amount=str(tokens_to_wei(options.token_amount)),
            only_preferred_relays=options.only_preferred_relays,
            is_smart_wallet_deploy=True,
            index=str(smart_wallet.index),
            recoverer=options.recoverer or ZERO_ADDRESS,
            smart_wallet_address=smart_wallet.address,
        )

        logger.info(
            "deploying_smart_wallet",
            address=smart_wallet.address,
            index=smart_wallet.index,
            token=envelope.token_contract,
            token_amount=envelope.token_amount,
        )

        transaction = await provider.deploy_smart_wallet(envelope.to_dict())

        logger.info(
            "smart_wallet_deployed",
            address=smart_wallet.address,
            transaction=_describe_transaction(transaction),
        )

        smart_wallet.deployed = True
        smart_wallet.deploy_transaction = transaction
        smart_wallet.token_address = options.token_address
        return smart_wallet

    async def _check_deploy_balance(self, token_address: str, wallet_address: str) -> None:
        """Warn when the wallet cannot pay for its own deploy; never blocks it."""
        token = self._require_contracts().get_token(token_address)
        balance = await token.functions.balanceOf(Web3.to_checksum_address(wallet_address)).call()

        if balance <= 0:
            logger.warning(
                "subsidized_deploy",
                address=wallet_address,
                token=token_address,
                message="Smart Wallet doesn't have funds so this will be a subsidized deploy.",
            )
        else:
            logger.debug("smart_wallet_token_balance", address=wallet_address, balance=balance)

    # ------------------------------------------------------------------
    # Relayed transactions
    # ------------------------------------------------------------------

    async def relay_transaction(self, options: RelayTransactionOptions) -> Any:
        """
        Relay a call through a deployed smart wallet.

        Waits for the relayed call to be mined and returns its receipt.

        Raises:
            NotDeployedError: If the wallet has no code; the relay is not contacted
            RelayTransportError: If the relay fails or the call does not succeed
        """
        provider = self._require_relay_provider()
        addresses = self._require_contracts().addresses
        smart_wallet = options.smart_wallet
        unsigned_tx = options.unsigned_tx

        logger.debug("checking_smart_wallet_exists", address=smart_wallet.address)
        if not await address_has_code(self.w3, smart_wallet.address):
            raise NotDeployedError(smart_wallet.address)

        if not unsigned_tx.get("to"):
            raise ValueError("Transaction to relay must have a 'to' address")

        envelope = RelayEnvelope(
            from_address=unsigned_tx.get("from") or self.get_account_address(),
            to=unsigned_tx["to"],
            data=_hex(unsigned_tx.get("data")) or "0x",
            value=unsigned_tx.get("value") or 0,
            gas=unsigned_tx.get("gas"),
            call_verifier=options.call_verifier or addresses.smart_wallet_relay_verifier,
            call_forwarder=smart_wallet.address,
            relay_hub=options.relay_hub or self.enveloping_config.relay_hub_address,
            token_contract=options.token_address or smart_wallet.token_address or ZERO_ADDRESS,
            token_amount=str(tokens_to_wei(options.token_amount)),
            only_preferred_relays=options.only_preferred_relays,
            is_smart_wallet_deploy=False,
        )

        request_id = self._next_request_id()
        payload = build_send_transaction_payload(request_id, envelope.to_dict())

        logger.info(
            "relaying_transaction",
            request_id=request_id,
            smart_wallet=smart_wallet.address,
            to=envelope.to,
            token=envelope.token_contract,
            token_amount=envelope.token_amount,
        )

        error, result = await send_request(provider, payload)
        if error is not None:
            logger.error("relay_transaction_failed", request_id=request_id, error=str(error))
            if isinstance(error, BaseException):
                raise error
            raise RelayTransportError(f"Relay provider error: {error}")

        tx_hash = self._extract_transaction_hash(result, request_id)
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.config.settings.receipt_timeout
            )
        except (TimeExhausted, TransactionNotFound) as e:
            logger.error(
                "relay_transaction_not_mined",
                request_id=request_id,
                tx_hash=_hex(tx_hash),
                error=str(e),
            )
            raise RelayTransportError(
                f"Relayed transaction {_hex(tx_hash)} was not mined: {e}"
            ) from e

        if not receipt.get("status"):
            logger.error(
                "relay_transaction_unsuccessful",
                request_id=request_id,
                tx_hash=_hex(tx_hash),
            )
            raise RelayTransportError("Error relaying transaction", receipt=dict(receipt))

        logger.info(
            "transaction_relayed",
            request_id=request_id,
            tx_hash=_hex(tx_hash),
            gas_used=receipt.get("gasUsed"),
        )
        return receipt

    @staticmethod
    def _extract_transaction_hash(result: Any, request_id: int) -> Any:
        """Transaction hash from a relay response (JSON-RPC envelope, receipt or bare hash)."""
        if isinstance(result, Mapping) and ("jsonrpc" in result or "id" in result):
            if result.get("id") is not None and result["id"] != request_id:
                raise RelayTransportError(
                    f"Relay response id {result['id']} does not match request id {request_id}"
                )
            if result.get("error"):
                raise RelayTransportError(f"Relay provider error: {result['error']}")
            result = result.get("result")

        if isinstance(result, Mapping):
            result = result.get("transactionHash")

        if not result:
            raise RelayTransportError("Relay provider returned no transaction hash")
        return result

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    async def is_allowed_token(self, token_address: str) -> bool:
        """A token is allowed only if both verifiers accept it."""
        contracts = self._require_contracts()
        token = Web3.to_checksum_address(token_address)

        relay_accepts = await contracts.get_relay_verifier().functions.acceptsToken(token).call()
        deploy_accepts = await contracts.get_deploy_verifier().functions.acceptsToken(token).call()

        logger.debug(
            "token_allowance_checked",
            token=token,
            relay_verifier=relay_accepts,
            deploy_verifier=deploy_accepts,
        )
        return bool(relay_accepts and deploy_accepts)

    async def get_allowed_tokens(self) -> list[str]:
        """Tokens accepted by either verifier, without duplicates."""
        contracts = self._require_contracts()

        relay_tokens = await contracts.get_relay_verifier().functions.getAcceptedTokens().call()
        deploy_tokens = await contracts.get_deploy_verifier().functions.getAcceptedTokens().call()

        return list(dict.fromkeys([*relay_tokens, *deploy_tokens]))

    async def allow_token(self, token_address: str, account: Optional[Sender] = None) -> None:
        """
        Accept a token on the deploy verifier, then on the relay verifier.

        Must be sent by the verifiers' owner. A failure on the relay
        verifier leaves the deploy verifier updated.

        Raises:
            RevertedCallError: If either call reverts
        """
        contracts = self._require_contracts()
        sender = account or self.account or self.get_account_address()
        token = Web3.to_checksum_address(token_address)

        logger.debug("allow_token", token=token, sender=_sender_address(sender))

        for role, verifier in (
            ("deploy_verifier", contracts.get_deploy_verifier()),
            ("relay_verifier", contracts.get_relay_verifier()),
        ):
            try:
                receipt = await self._send_contract_transaction(
                    verifier.functions.acceptToken(token), sender
                )
            except RevertedCallError as e:
                logger.error("allow_token_failed", token=token, verifier=role, reason=e.reason)
                raise
            logger.info(
                "token_allowed",
                token=token,
                verifier=role,
                tx_hash=_hex(receipt.get("transactionHash")),
            )

    async def _send_contract_transaction(self, function: Any, sender: Sender) -> Any:
        """Send a mutating contract call and wait for a successful receipt."""
        from_address = Web3.to_checksum_address(_sender_address(sender))

        try:
            tx = await function.build_transaction(
                {
                    "from": from_address,
                    "nonce": await self.w3.eth.get_transaction_count(from_address),
                    "gasPrice": await self.w3.eth.gas_price,
                }
            )
        except ContractLogicError as e:
            # Reverted while estimating gas
            raise RevertedCallError(_reason_from_error(e)) from e

        if isinstance(sender, str):
            tx_hash = await self.w3.eth.send_transaction(tx)
        else:
            signed = sender.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)

        receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash)
        if not receipt["status"]:
            reason = await self.get_revert_reason(tx, receipt["blockNumber"])
            raise RevertedCallError(reason, tx_hash=_hex(tx_hash))

        return receipt

    async def get_revert_reason(self, tx: Mapping[str, Any], block_number: int) -> str:
        """
        Replay a failed transaction at its block to recover the revert reason.

        Falls back to the raw error text, or to "cannot get reason" when
        the replay does not fail.
        """
        call = {key: tx[key] for key in ("from", "to", "data", "value") if key in tx}
        try:
            await self.w3.eth.call(call, block_identifier=block_number)
        except ContractLogicError as e:
            return _reason_from_error(e)
        except (Web3Exception, ValueError) as e:
            data = e.args[0].get("data") if e.args and isinstance(e.args[0], dict) else None
            return decode_revert_reason(data) or str(e)
        return CANNOT_GET_REASON

    # ------------------------------------------------------------------
    # Gas estimation
    # ------------------------------------------------------------------

    async def estimate_max_possible_relay_gas(
        self, options: RelayGasEstimationOptions
    ) -> RelayGasEstimate:
        """Upper bound of the relay gas, priced at the current gas price."""
        provider = self._require_relay_provider()
        envelope = self._build_estimation_envelope(options)
        relay_worker = options.relay_worker or await self._discover_relay_worker()

        gas = await provider.estimate_max_possible_relay_gas(envelope.to_dict(), relay_worker)
        gas_price = await provider.calculate_gas_price()

        estimate = RelayGasEstimate(gas=int(gas), gas_price=int(gas_price))
        logger.debug(
            "relay_gas_estimated",
            deploy=options.is_smart_wallet_deploy,
            gas=estimate.gas,
            gas_price=estimate.gas_price,
        )
        return estimate

    async def estimate_max_possible_relay_gas_with_linear_fit(
        self, options: RelayGasEstimationOptions
    ) -> RelayGasEstimate:
        """Relay gas from the linear fit over internal call and token transfer costs."""
        provider = self._require_relay_provider()
        relay_worker = options.relay_worker or await self._discover_relay_worker()

        gas_price = await provider.calculate_gas_price()
        envelope = self._build_estimation_envelope(options).model_copy(
            update={"gas_price": str(gas_price)}
        )
        details = envelope.to_dict()

        internal_call_cost = await provider.get_internal_call_cost(details)
        token_transfer_cost = await provider.estimate_token_transfer_gas(details, relay_worker)
        gas = await provider.estimate_max_possible_relay_gas_with_linear_fit(
            internal_call_cost, token_transfer_cost
        )

        estimate = RelayGasEstimate(gas=int(gas), gas_price=int(gas_price))
        logger.debug(
            "relay_gas_estimated_linear_fit",
            deploy=options.is_smart_wallet_deploy,
            internal_call_cost=internal_call_cost,
            token_transfer_cost=token_transfer_cost,
            gas=estimate.gas,
        )
        return estimate

    def _build_estimation_envelope(self, options: RelayGasEstimationOptions) -> RelayEnvelope:
        addresses = self._require_contracts().addresses
        common = {
            "from_address": self.get_account_address(),
            "value": options.value,
            "relay_hub": self.enveloping_config.relay_hub_address,
            "token_contract": options.token_address or ZERO_ADDRESS,
            "token_amount": str(tokens_to_wei(options.token_fees)),
            "only_preferred_relays": options.only_preferred_relays,
        }

        if options.is_smart_wallet_deploy:
            return RelayEnvelope(
                **common,
                to=ZERO_ADDRESS,
                data="0x",
                call_verifier=options.call_verifier or addresses.smart_wallet_deploy_verifier,
                call_forwarder=options.call_forwarder or addresses.smart_wallet_factory,
                is_smart_wallet_deploy=True,
                index=str(options.index),
                recoverer=ZERO_ADDRESS,
                smart_wallet_address=options.smart_wallet_address,
            )

        if not options.destination_contract:
            raise ValueError("Relay estimation needs a destination contract")

        return RelayEnvelope(
            **common,
            to=options.destination_contract,
            data=options.abi_encoded_tx,
            call_verifier=options.call_verifier or addresses.smart_wallet_relay_verifier,
            call_forwarder=options.call_forwarder or options.smart_wallet_address,
            is_smart_wallet_deploy=False,
        )

    async def _discover_relay_worker(self) -> str:
        """Worker of the first preferred relay server."""
        relays = self.enveloping_config.preferred_relays if self.enveloping_config else []
        if not relays:
            raise ConfigurationError("No relay worker given and no preferred relays configured")
        return await get_relay_worker(relays[0], timeout=self.config.settings.relay_server_timeout)

    # ------------------------------------------------------------------
    # Arbitration
    # ------------------------------------------------------------------

    async def claim(self, commitment_receipt: Any) -> None:
        """Penalize a relay manager that did not honor a commitment. Not available yet."""
        logger.debug("claim", commitment_receipt=commitment_receipt)
        raise NotImplementedError(
            "NOT IMPLEMENTED: this will be available with arbiter integration."
        )


def _sender_address(sender: Sender) -> str:
    return sender if isinstance(sender, str) else sender.address


def _reason_from_error(error: ContractLogicError) -> str:
    data = getattr(error, "data", None)
    decoded = decode_revert_reason(data) if isinstance(data, (str, bytes)) else None
    return decoded or getattr(error, "message", None) or str(error) or CANNOT_GET_REASON
