"""
Chain helpers: code presence, contract handles, units and revert reasons.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3

# Different nodes report "no code" differently
EMPTY_CODE = HexBytes("0x")
NO_CODE = HexBytes("0x00")

WEI_PER_TOKEN = Decimal(10) ** 18

# Error(string) selector
REVERT_SELECTOR = HexBytes("0x08c379a0")


async def address_has_code(w3: AsyncWeb3, address: str) -> bool:
    """Whether there is deployed code at `address`. Always queries the node."""
    code = HexBytes(await w3.eth.get_code(Web3.to_checksum_address(address)))
    return code != EMPTY_CODE and code != NO_CODE


def get_contract(w3: AsyncWeb3, abi: list[dict[str, Any]], address: str) -> Any:
    """Bind an ABI to an address."""
    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)


def tokens_to_wei(amount: Union[int, float, str, Decimal]) -> int:
    """
    Scale a whole-token amount to its smallest on-chain unit (10^18).

    Uses Decimal arithmetic so that e.g. 0.1 becomes exactly
    100000000000000000 and not a float approximation.

    Examples:
        >>> tokens_to_wei(1)
        1000000000000000000
        >>> tokens_to_wei("0.5")
        500000000000000000
    """
    try:
        if isinstance(amount, Decimal):
            dec_amount = amount
        else:
            # float goes through str to keep its shortest representation
            dec_amount = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid token amount: {amount!r}") from e

    if not dec_amount.is_finite() or dec_amount < 0:
        raise ValueError(f"Token amount must be a non-negative number, got {amount!r}")

    wei = dec_amount * WEI_PER_TOKEN
    if wei != wei.to_integral_value():
        raise ValueError(f"Token amount {amount} results in fractional wei: {wei}")

    return int(wei)


def decode_revert_reason(data: Union[str, bytes, None]) -> Optional[str]:
    """
    Decode a Solidity `Error(string)` revert payload.

    Returns None when the payload is not a decodable reason.
    """
    if not data:
        return None

    try:
        raw = HexBytes(data)
    except (TypeError, ValueError):
        return None

    if raw[:4] != REVERT_SELECTOR:
        return None

    try:
        (reason,) = decode(["string"], bytes(raw[4:]))
    except (DecodingError, OverflowError, ValueError):
        return None
    return reason
