"""
Tests for lazily built contract handles.
"""

from relaying_services.contracts import (
    DEPLOY_VERIFIER_ABI,
    ERC20_ABI,
    RELAY_VERIFIER_ABI,
    SMART_WALLET_FACTORY_ABI,
    Contracts,
)

from conftest import REGTEST, TOKEN_ADDRESS, FakeWeb3, checksum


class TestContracts:
    def test_handles_bound_to_registry_addresses(self) -> None:
        w3 = FakeWeb3()
        contracts = Contracts(w3, REGTEST)

        assert contracts.get_smart_wallet_factory().address == checksum(REGTEST.smart_wallet_factory)
        assert contracts.get_relay_verifier().address == checksum(REGTEST.smart_wallet_relay_verifier)
        assert contracts.get_deploy_verifier().address == checksum(REGTEST.smart_wallet_deploy_verifier)

    def test_handles_carry_role_abi(self) -> None:
        w3 = FakeWeb3()
        contracts = Contracts(w3, REGTEST)

        assert contracts.get_smart_wallet_factory().abi == SMART_WALLET_FACTORY_ABI
        assert contracts.get_relay_verifier().abi == RELAY_VERIFIER_ABI
        assert contracts.get_deploy_verifier().abi == DEPLOY_VERIFIER_ABI

    def test_handles_are_cached(self) -> None:
        contracts = Contracts(FakeWeb3(), REGTEST)
        assert contracts.get_relay_verifier() is contracts.get_relay_verifier()

    def test_preload_builds_every_role(self) -> None:
        w3 = FakeWeb3()
        contracts = Contracts(w3, REGTEST)
        contracts.preload()

        assert set(w3.eth.contracts) == {
            checksum(REGTEST.smart_wallet_factory),
            checksum(REGTEST.smart_wallet_relay_verifier),
            checksum(REGTEST.smart_wallet_deploy_verifier),
        }

    def test_token_handle(self) -> None:
        w3 = FakeWeb3()
        token = Contracts(w3, REGTEST).get_token(TOKEN_ADDRESS)
        assert token.address == checksum(TOKEN_ADDRESS)
        assert token.abi == ERC20_ABI
