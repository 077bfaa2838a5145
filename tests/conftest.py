"""Shared fixtures for multicall tests."""

from __future__ import annotations

from typing import Callable, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_abi import encode

from core.errors import ChunkDispatchFailure
from core.network.calls import Call, RawCallItem, RawResult, ReturnData
from core.network.multicall import MultiCall

AGGREGATOR = "0x5Eb3fa2DFECdDe21C950813C665E9364fa609bD2"
TOKEN_A = "0x960b236A07cf122663c4303350609A66A7B288C0"
TOKEN_B = "0x1F573D6Fb3F13d689FF844B4cE37794d79a7FF1C"
CONVERTER_A = "0xE870D00176b2C71AFD4c43ceA550228E22be4ABd"
CONVERTER_B = "0xca5d7661a4D9f1D3954E64664d8710fDc4FaA5b7"

SYMBOL = bytes.fromhex("95d89b41")
DECIMALS = bytes.fromhex("313ce567")
CONNECTOR_TOKEN_COUNT = bytes.fromhex("71f52bf3")
GET_RESERVES = bytes.fromhex("0902f1ac")


def make_call(
    target: str,
    selector: bytes,
    output_types: Sequence[str],
    direct_result=None,
    direct_error: Optional[Exception] = None,
) -> Call:
    """Call whose direct invocation returns `direct_result` or raises `direct_error`"""
    function = MagicMock()
    function.call = AsyncMock(return_value=direct_result, side_effect=direct_error)
    return Call(target=target, call_data=selector, output_types=tuple(output_types), function=function)


class FakeAggregator:
    """In-memory aggregate() answering from a (target, call_data) table"""

    def __init__(
        self,
        responses: dict[tuple[str, bytes], tuple[bool, bytes]],
        fail: Optional[Callable[[list[RawCallItem]], bool]] = None,
    ):
        self.responses = responses
        self.fail = fail or (lambda items: False)
        self.requests: list[list[RawCallItem]] = []
        self.block_heights: list[Optional[int]] = []

    async def __call__(self, items, strict=False, block_height=None) -> list[RawResult]:
        items = list(items)
        self.requests.append(items)
        self.block_heights.append(block_height)
        if self.fail(items):
            raise ChunkDispatchFailure(len(items), "execution reverted")
        return [
            RawResult(target, ReturnData(*self.responses[(target, call_data)]))
            for target, call_data in items
        ]

    @property
    def request_sizes(self) -> list[int]:
        return [len(request) for request in self.requests]


TOKEN_RESPONSES = {
    (TOKEN_A, SYMBOL): (True, encode(["string"], ["ANT"])),
    (TOKEN_A, DECIMALS): (True, encode(["uint8"], [18])),
    (TOKEN_B, SYMBOL): (True, encode(["string"], ["BNT"])),
    (TOKEN_B, DECIMALS): (True, encode(["uint8"], [18])),
    (CONVERTER_A, CONNECTOR_TOKEN_COUNT): (True, encode(["uint16"], [2])),
    (CONVERTER_B, CONNECTOR_TOKEN_COUNT): (True, encode(["uint16"], [2])),
}


@pytest.fixture
def fake_aggregator() -> FakeAggregator:
    return FakeAggregator(dict(TOKEN_RESPONSES))


@pytest.fixture
def multicall(fake_aggregator: FakeAggregator) -> MultiCall:
    """MultiCall whose aggregate requests are answered by the fake aggregator"""
    client = MultiCall(MagicMock(), AGGREGATOR, [300, 100, 25])
    client.raw_call = fake_aggregator
    return client
