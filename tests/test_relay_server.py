"""
Tests for the relay server client.
"""

import httpx
import pytest

from relaying_services.errors import RelayTransportError
from relaying_services.relay_server import RelayServerClient

WORKER = "0x5555555555555555555555555555555555555555"
MANAGER = "0x6666666666666666666666666666666666666666"
HUB = "0x3bA95e1cccd397b5124BcdCC5bf0952114E6A701"


def _getaddr_payload() -> dict:
    return {
        "relayWorkerAddress": WORKER,
        "relayManagerAddress": MANAGER,
        "relayHubAddress": HUB,
        "feesReceiver": MANAGER,
        "minGasPrice": "6000000000",
        "chainId": "33",
        "networkId": "33",
        "ready": True,
        "version": "2.0.1",
    }


class TestRelayServerClient:
    @pytest.mark.asyncio
    async def test_get_address_info(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=_getaddr_payload())

        client = RelayServerClient("http://relay:8090/", transport=httpx.MockTransport(handler))
        info = await client.get_address_info()

        assert str(requests[0].url) == "http://relay:8090/getaddr"
        assert info.relay_worker_address == WORKER
        assert info.relay_manager_address == MANAGER
        assert info.relay_hub_address == HUB
        assert info.ready is True
        assert info.version == "2.0.1"

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        client = RelayServerClient("http://relay:8090", transport=httpx.MockTransport(handler))

        with pytest.raises(RelayTransportError, match="http://relay:8090"):
            await client.get_address_info()

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = RelayServerClient("http://relay:8090", transport=httpx.MockTransport(handler))

        with pytest.raises(RelayTransportError):
            await client.get_address_info()
