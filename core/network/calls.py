"""
Call descriptors and the raw request/response records of an aggregate round trip
"""
import inspect
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional

from eth_utils import get_abi_output_types, to_bytes

from core.errors import CallEncodingError, MultiCallError


@dataclass(frozen=True)
class Call:
    """
    A read-only contract call bound to its target.

    `call_data` is the ABI encoded payload sent through the aggregator and
    `output_types` drives decoding of the returned bytes. `function` is the
    web3 contract function used for direct invocation (traditional mode).
    """
    target: str
    call_data: bytes
    output_types: tuple[str, ...]
    function: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def from_function(cls, function: Any) -> "Call":
        """Build a Call from a web3 contract function, e.g. `token.functions.symbol()`"""
        if not getattr(function, "address", None):
            raise CallEncodingError(f"Contract function {function!r} is not bound to an address")

        try:
            # web3 applies its argument normalizers, e.g. dicts for struct inputs
            call_data = to_bytes(hexstr=function._encode_transaction_data())
            output_types = tuple(get_abi_output_types(function.abi))
        except Exception as e:
            name = getattr(function, "fn_name", repr(function))
            raise CallEncodingError(f"Failed to encode call to {name}: {e}") from e

        return cls(
            target=function.address,
            call_data=call_data,
            output_types=output_types,
            function=function
        )

    def encode(self) -> bytes:
        """ABI encoded payload for the aggregator"""
        return self.call_data

    async def call(self, block_height: Optional[int] = None) -> Any:
        """Invoke the call directly against the node"""
        if self.function is None:
            raise MultiCallError(f"Call to {self.target} has no bound contract function")

        result = self.function.call(block_identifier=block_height)
        # Sync Web3 contract functions return the value itself
        if inspect.isawaitable(result):
            result = await result
        return result


class RawCallItem(NamedTuple):
    """One (target, payload) entry of an aggregate request"""
    target: str
    call_data: bytes


class ReturnData(NamedTuple):
    success: bool
    data: bytes


class RawResult(NamedTuple):
    """One aggregate response entry paired with the target it was sent to"""
    target: str
    result: ReturnData

    @property
    def success(self) -> bool:
        return self.result.success

    @property
    def data(self) -> bytes:
        return self.result.data


class FieldResult(NamedTuple):
    """A labeled call together with its raw response"""
    label: str
    call: Call
    raw: RawResult
