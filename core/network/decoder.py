"""
Decoding of raw aggregate results
Values are normalized the same way web3 normalizes a direct contract call,
so addresses come back checksummed in both modes.
"""
from typing import Any, Sequence

from eth_abi import decode
from web3._utils.abi import map_abi_data
from web3._utils.normalizers import BASE_RETURN_NORMALIZERS

from core.network.calls import FieldResult, RawResult
from utils.logger import get_logger

logger = get_logger(__name__)


def decode_raw(raw: RawResult, output_types: Sequence[str]) -> Any:
    """
    Decode the bytes of a single call.
    Returns None if the call failed or the bytes do not match the output types.
    """
    if not raw.success:
        return None

    types = list(output_types)
    try:
        decoded = map_abi_data(BASE_RETURN_NORMALIZERS, types, decode(types, raw.data))
    except Exception as e:
        logger.debug(f"Failed to decode {types} result from {raw.target}: {e}")
        return None

    # Unwrap single values
    if len(decoded) == 1:
        return decoded[0]
    return tuple(decoded)


def decode_field(item: FieldResult, skip_decode: bool = False) -> Any:
    if skip_decode:
        return item.raw.data
    return decode_raw(item.raw, item.call.output_types)
