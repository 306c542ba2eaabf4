"""
Read-only client for a relay server's public endpoints.
"""

from typing import Optional, Union

import httpx
import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .errors import RelayTransportError

logger = structlog.get_logger()


class RelayServerInfo(BaseModel):
    """Response of `GET /getaddr`."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="ignore")

    relay_worker_address: str
    relay_manager_address: str
    relay_hub_address: str
    fees_receiver: Optional[str] = None
    min_gas_price: Optional[Union[int, str]] = None
    chain_id: Optional[Union[int, str]] = None
    network_id: Optional[Union[int, str]] = None
    ready: bool = False
    version: Optional[str] = None


class RelayServerClient:
    """
    Async client for a single relay server.

    Only exposes what the SDK reads; relay selection and submission
    belong to the relay provider.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def get_address_info(self) -> RelayServerInfo:
        """Fetch the relay's worker, manager and hub addresses."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.url}/getaddr")
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.error("relay_server_request_failed", url=self.url, error=str(e))
            raise RelayTransportError(f"Relay server {self.url} request failed: {e}") from e

        info = RelayServerInfo.model_validate(payload)
        logger.debug(
            "relay_server_info",
            url=self.url,
            worker=info.relay_worker_address,
            ready=info.ready,
        )
        return info


async def get_relay_worker(url: str, timeout: float = 10.0) -> str:
    """Worker address advertised by the relay at `url`."""
    info = await RelayServerClient(url, timeout=timeout).get_address_info()
    return info.relay_worker_address
