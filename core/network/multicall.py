"""
Multicall client
Batches read-only contract calls into as few aggregate() round trips as possible.

Callers submit groups of shapes, each shape a mapping of labels to contract
calls or literal strings, and get back the same nesting of plain dicts with
decoded values:

    tokens = [
        {
            "tokenAddress": "originAddress",
            "symbol": token.functions.symbol(),
            "decimals": token.functions.decimals(),
        }
        for token in contracts
    ]
    [token_info] = await multicall.all([tokens])
"""
import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Any, Iterable, Mapping, Optional, Sequence

from eth_utils import to_bytes
from web3 import AsyncWeb3

from config.settings import DEFAULT_CHUNK_SIZES
from core.errors import ChunkDispatchFailure, ConfigurationError
from core.network.abi import MULTICALL_ABI
from core.network.calls import Call, FieldResult, RawCallItem, RawResult, ReturnData
from core.network.chunking import ChunkedAggregator, validate_chunk_sizes
from core.network.decoder import decode_field
from core.network.index_set import build_index_set, flatten, rebuild_from_index_set
from core.network.shapes import (
    Shape, ShapeResult,
    normalize_groups, recombine, resolve_origin, strip_literals
)
from utils.logger import get_logger
from utils.rate_limiter import TokenBucketRateLimiter

logger = get_logger(__name__)


@dataclass
class CallOptions:
    """Per invocation options for MultiCall.all"""
    skip_decode: bool = False  # return raw bytes for every call field
    traditional: bool = False  # one direct eth_call per field instead of aggregate()
    block_height: Optional[int] = None  # pin every call to this block


def _as_raw_item(item: Sequence) -> RawCallItem:
    target, call_data = item
    if isinstance(call_data, str):
        call_data = to_bytes(hexstr=call_data)
    return RawCallItem(target, bytes(call_data))


class MultiCall:
    """
    Client for an aggregator contract exposing
    aggregate((address,bytes)[] calls, bool strict) -> (uint256, (bool,bytes)[])
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        contract: str,
        chunk_sizes: Iterable[int] = DEFAULT_CHUNK_SIZES,
        throttle: Optional[TokenBucketRateLimiter] = None
    ):
        if not isinstance(contract, str) or not AsyncWeb3.is_address(contract):
            raise ConfigurationError(f"Invalid aggregator contract address: {contract!r}")

        self.web3 = web3
        self.contract_address = AsyncWeb3.to_checksum_address(contract)
        self.chunk_sizes = validate_chunk_sizes(chunk_sizes)
        self._throttle = throttle
        self._contract = None

    def _get_contract(self):
        """Get aggregator contract"""
        if self._contract is None:
            self._contract = self.web3.eth.contract(
                address=self.contract_address,
                abi=MULTICALL_ABI
            )
        return self._contract

    async def raw_call(
        self,
        calls: Sequence[Sequence],
        strict: bool = False,
        block_height: Optional[int] = None
    ) -> list[RawResult]:
        """
        Execute one aggregate() request.
        Any failure of the request fails the whole batch with ChunkDispatchFailure.
        """
        items = [_as_raw_item(item) for item in calls]
        call_structs = [
            (AsyncWeb3.to_checksum_address(item.target), item.call_data)
            for item in items
        ]

        try:
            _, return_data = await self._get_contract().functions.aggregate(
                call_structs, strict
            ).call(block_identifier=block_height)
        except Exception as e:
            raise ChunkDispatchFailure(len(items), str(e)) from e

        if len(return_data) != len(items):
            raise ChunkDispatchFailure(
                len(items), f"expected {len(items)} results, got {len(return_data)}"
            )

        return [
            RawResult(item.target, ReturnData(bool(success), bytes(data)))
            for item, (success, data) in zip(items, return_data)
        ]

    async def raw_call_in_chunks(
        self,
        calls: Sequence[Sequence],
        chunk_sizes: Optional[Iterable[int]] = None,
        block_height: Optional[int] = None
    ) -> list[RawResult]:
        """Execute aggregate() requests in chunks, shrinking failed chunks along the ladder"""
        aggregator = ChunkedAggregator(
            partial(self.raw_call, strict=False, block_height=block_height),
            self.chunk_sizes if chunk_sizes is None else chunk_sizes,
            self._throttle
        )
        return await aggregator.run([_as_raw_item(item) for item in calls])

    async def multi_call_groups(
        self,
        calls: list[list[Sequence]],
        block_height: Optional[int] = None
    ) -> list[list[RawResult]]:
        """Fetch several lists of calls at once, results grouped like the input"""
        if not calls:
            return []

        indexes = build_index_set(calls)
        results = await self.raw_call_in_chunks(flatten(calls), block_height=block_height)
        return rebuild_from_index_set(results, indexes)

    async def all(
        self,
        groups_of_shapes: list[list[Mapping[str, Any]]],
        options: Optional[CallOptions] = None
    ) -> list[list[dict[str, Any]]]:
        """
        Fetch every call of every shape.

        Returns the same nesting as the input with one dict per shape. Calls
        that fail or cannot be decoded come back as None; literal fields are
        returned as given, except "originAddress" which becomes the address
        the shape's calls were made to.
        """
        if not any(groups_of_shapes):
            return groups_of_shapes

        options = options or CallOptions()
        shapes = normalize_groups(groups_of_shapes)

        if options.traditional:
            results = await self._traditional_call(shapes, options.block_height)
        else:
            results = await self._aggregated_call(shapes, options)

        return [
            [recombine(shape, result) for shape, result in zip(group, group_results, strict=True)]
            for group, group_results in zip(shapes, results, strict=True)
        ]

    def _project(self, shapes: list[list[Shape]]) -> tuple[list[list[dict[str, Call]]], list[list[Optional[str]]]]:
        """Strip literals and resolve the origin of every shape before any request is made"""
        plain = [[strip_literals(shape) for shape in group] for group in shapes]
        origins = [[resolve_origin(calls) for calls in group] for group in plain]
        return plain, origins

    async def _aggregated_call(
        self,
        shapes: list[list[Shape]],
        options: CallOptions
    ) -> list[list[ShapeResult]]:
        plain, origins = self._project(shapes)
        groups_index_set = build_index_set(plain)
        flat_shapes = flatten(plain)
        flat_origins = flatten(origins)

        item_groups = [
            [RawCallItem(origin, call.encode()) for call in calls.values()]
            for calls, origin in zip(flat_shapes, flat_origins)
        ]
        raw_groups = await self.multi_call_groups(item_groups, options.block_height)

        shape_results = [
            self._decode_shape(calls, origin, raws, options.skip_decode)
            for calls, origin, raws in zip(flat_shapes, flat_origins, raw_groups, strict=True)
        ]
        logger.debug(
            f"Fetched {len(flatten(item_groups))} calls for {len(flat_shapes)} shapes "
            f"via {self.contract_address}"
        )
        return rebuild_from_index_set(shape_results, groups_index_set)

    def _decode_shape(
        self,
        calls: dict[str, Call],
        origin: Optional[str],
        raws: list[RawResult],
        skip_decode: bool
    ) -> ShapeResult:
        fields = [
            FieldResult(label, call, raw)
            for (label, call), raw in zip(calls.items(), raws, strict=True)
        ]
        return ShapeResult(
            origin_address=origin,
            data={item.label: decode_field(item, skip_decode) for item in fields}
        )

    async def _traditional_call(
        self,
        shapes: list[list[Shape]],
        block_height: Optional[int]
    ) -> list[list[ShapeResult]]:
        plain, origins = self._project(shapes)
        return await asyncio.gather(*(
            asyncio.gather(*(
                self._direct_shape(calls, origin, block_height)
                for calls, origin in zip(group, group_origins)
            ))
            for group, group_origins in zip(plain, origins)
        ))

    async def _direct_shape(
        self,
        calls: dict[str, Call],
        origin: Optional[str],
        block_height: Optional[int]
    ) -> ShapeResult:
        values = await asyncio.gather(*(
            self._direct_call(call, block_height) for call in calls.values()
        ))
        return ShapeResult(origin_address=origin, data=dict(zip(calls.keys(), values)))

    async def _direct_call(self, call: Call, block_height: Optional[int]) -> Any:
        try:
            value = await call.call(block_height)
        except Exception as e:
            logger.debug(f"Direct call to {call.target} failed: {e}")
            return None

        # Match the tuple returned by decode_raw for multiple outputs
        if len(call.output_types) > 1 and isinstance(value, list):
            return tuple(value)
        return value
