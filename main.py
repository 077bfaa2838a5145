#!/usr/bin/env python3
"""
Batched ERC-20 reader
=====================
Reads name, symbol, decimals and total supply of any number of tokens
through a single aggregate() contract, falling back to smaller batches
when a request fails.

Usage:
    python main.py 0x960b236A07cf122663c4303350609A66A7B288C0 0x1F573D6Fb3F13d689FF844B4cE37794d79a7FF1C
    python main.py --chain ethereum --block 12000000 --chunk-sizes 100,10,1 TOKEN [TOKEN ...]
"""
import argparse
import asyncio
import sys
from typing import Any, Optional

from web3 import AsyncWeb3

from config.chains import find_chain
from config.settings import DEFAULT_CHUNK_SIZES
from core.errors import MultiCallError
from core.network.abi import ERC20_ABI
from core.network.multicall import CallOptions, MultiCall
from core.network.shapes import ORIGIN_ADDRESS
from ui.terminal import render_groups
from utils.logger import setup_logging, get_logger
from utils.rate_limiter import TokenBucketRateLimiter
from utils.rpc_manager import rpc_manager

logger = get_logger(__name__)


def parse_chunk_sizes(value: str) -> list[int]:
    try:
        return [int(size) for size in value.split(",") if size.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid chunk sizes: {value}")


def parse_address(value: str) -> str:
    if not AsyncWeb3.is_address(value):
        raise argparse.ArgumentTypeError(f"Invalid address: {value}")
    return AsyncWeb3.to_checksum_address(value)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Read ERC-20 metadata in batched contract calls")
    parser.add_argument("tokens", nargs="+", type=parse_address, help="token contract addresses")
    parser.add_argument("--chain", default="ethereum", help="chain name (default: ethereum)")
    parser.add_argument("--multicall", help="aggregator contract address, overrides the chain default")
    parser.add_argument("--block", type=int, help="block height to read at")
    parser.add_argument("--chunk-sizes", type=parse_chunk_sizes, help="comma separated, e.g. 300,100,25")
    parser.add_argument("--traditional", action="store_true", help="one eth_call per field instead of aggregate()")
    parser.add_argument("--raw", action="store_true", help="show undecoded return data")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def build_token_shapes(web3: AsyncWeb3, tokens: list[str]) -> list[dict[str, Any]]:
    """One shape per token, tagged with the token address"""
    shapes = []
    for address in tokens:
        token = web3.eth.contract(address=address, abi=ERC20_ABI)
        shapes.append({
            "tokenAddress": ORIGIN_ADDRESS,
            "symbol": token.functions.symbol(),
            "name": token.functions.name(),
            "decimals": token.functions.decimals(),
            "totalSupply": token.functions.totalSupply(),
        })
    return shapes


async def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        chain = find_chain(args.chain)
    except KeyError as e:
        logger.error(f"[red]{e}[/red]")
        return 2

    contract = args.multicall or chain.get_multicall_address()
    if not contract:
        logger.error(f"[red]No aggregator contract known for {chain.name}, pass --multicall[/red]")
        return 2

    try:
        web3 = await rpc_manager.get_web3(chain.chain_id)
        multicall = MultiCall(
            web3,
            contract,
            args.chunk_sizes or DEFAULT_CHUNK_SIZES,
            throttle=TokenBucketRateLimiter.from_settings()
        )
        options = CallOptions(
            skip_decode=args.raw,
            traditional=args.traditional,
            block_height=args.block
        )
        [tokens] = await multicall.all([build_token_shapes(web3, args.tokens)], options)
        render_groups(
            [tokens],
            [f"ERC-20 tokens on {chain.name} via {chain.address_url(multicall.contract_address)}"]
        )
    except MultiCallError as e:
        logger.error(f"[red]Fatal error: {e}[/red]")
        return 1
    finally:
        await rpc_manager.close()

    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
