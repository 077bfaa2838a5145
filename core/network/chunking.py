"""
Chunked dispatch of aggregate requests with adaptive fallback.

Calls are split into chunks of the first ladder size and all chunks are sent
concurrently. Chunks that fail are split again with the next size in the
ladder while successful chunks keep their results, so a single bad call only
costs extra round trips for the chunk that contains it. Results always come
back in the order of the input calls.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from core.errors import ChunkDispatchFailure, ConfigurationError, ExhaustedFallback
from core.network.calls import RawCallItem, RawResult
from utils.logger import get_logger
from utils.rate_limiter import TokenBucketRateLimiter

logger = get_logger(__name__)

Dispatch = Callable[[list[RawCallItem]], Awaitable[list[RawResult]]]


def validate_chunk_sizes(chunk_sizes: Iterable[int]) -> list[int]:
    """Return the ladder as a list, rejecting empty, non-integer or non-positive sizes"""
    try:
        sizes = list(chunk_sizes)
    except TypeError:
        raise ConfigurationError(f"Chunk sizes must be a sequence of numbers, got {chunk_sizes!r}")

    valid = all(
        isinstance(size, int) and not isinstance(size, bool) and size > 0
        for size in sizes
    )
    if not sizes or not valid:
        raise ConfigurationError(
            f"Chunk sizes must be positive numbers and at least one, got {sizes!r}"
        )
    return sizes


def remove_oversized_chunks(calls_length: int, chunk_sizes: list[int]) -> list[int]:
    """
    Cap the ladder at the number of calls.

    If any size exceeds the call count, the oversized sizes are replaced by a
    single entry equal to the call count:
    (150, [600, 400, 300, 100, 50, 25]) -> [150, 100, 50, 25]
    """
    if not any(size > calls_length for size in chunk_sizes):
        return chunk_sizes

    return [calls_length] + [size for size in chunk_sizes if size < calls_length]


@dataclass
class ChunkTask:
    """Calls still to be fetched, starting at `offset` of the flat result list"""
    offset: int
    items: list[RawCallItem]
    chunk_sizes: list[int]


@dataclass
class ChunkOutcome:
    offset: int
    items: list[RawCallItem]
    remaining_sizes: list[int]
    result: Optional[list[RawResult]] = None
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None


class ChunkedAggregator:
    """
    Runs aggregate requests in chunks, falling back to smaller chunks on failure
    """

    def __init__(
        self,
        dispatch: Dispatch,
        chunk_sizes: Iterable[int],
        throttle: Optional[TokenBucketRateLimiter] = None
    ):
        self._dispatch = dispatch
        self.chunk_sizes = validate_chunk_sizes(chunk_sizes)
        self._throttle = throttle

    def partition(self, task: ChunkTask) -> list[ChunkOutcome]:
        """Split a task into chunks of its (capped) leading ladder size"""
        sizes = remove_oversized_chunks(len(task.items), task.chunk_sizes)
        size, remaining = sizes[0], sizes[1:]
        return [
            ChunkOutcome(
                offset=task.offset + start,
                items=task.items[start:start + size],
                remaining_sizes=remaining
            )
            for start in range(0, len(task.items), size)
        ]

    async def _attempt(self, chunk: ChunkOutcome) -> ChunkOutcome:
        if self._throttle:
            await self._throttle.acquire()

        try:
            result = await self._dispatch(chunk.items)
            if len(result) != len(chunk.items):
                raise ChunkDispatchFailure(
                    len(chunk.items),
                    f"expected {len(chunk.items)} results, got {len(result)}"
                )
            chunk.result = result
        except Exception as e:
            logger.debug(f"Chunk of {len(chunk.items)} calls at offset {chunk.offset} failed: {e}")
            chunk.error = e
        return chunk

    async def run(
        self,
        items: Sequence[RawCallItem],
        chunk_sizes: Optional[Iterable[int]] = None
    ) -> list[RawResult]:
        """
        Fetch raw results for all calls.

        Every wave dispatches all pending chunks concurrently and waits for all
        of them before deciding what to retry. A failed chunk with no smaller
        size left aborts the whole run with ExhaustedFallback.
        """
        if not items:
            return []

        sizes = validate_chunk_sizes(chunk_sizes) if chunk_sizes is not None else self.chunk_sizes
        results: list[Optional[RawResult]] = [None] * len(items)
        pending = [ChunkTask(offset=0, items=list(items), chunk_sizes=sizes)]
        wave = 0

        while pending:
            chunks = [chunk for task in pending for chunk in self.partition(task)]
            outcomes = await asyncio.gather(*(self._attempt(chunk) for chunk in chunks))

            pending = []
            for outcome in outcomes:
                if outcome.success:
                    results[outcome.offset:outcome.offset + len(outcome.items)] = outcome.result
                elif not outcome.remaining_sizes:
                    logger.error(
                        f"[red]Aggregate failed for {len(outcome.items)} calls with no smaller chunk size left[/red]"
                    )
                    raise ExhaustedFallback(len(outcome.items), str(outcome.error)) from outcome.error
                else:
                    pending.append(ChunkTask(
                        offset=outcome.offset,
                        items=outcome.items,
                        chunk_sizes=outcome.remaining_sizes
                    ))

            if pending:
                retry_sizes = sorted(
                    {remove_oversized_chunks(len(task.items), task.chunk_sizes)[0] for task in pending},
                    reverse=True
                )
                logger.warning(
                    f"{len(pending)}/{len(chunks)} chunks failed in wave {wave}, "
                    f"retrying with chunk size {', '.join(map(str, retry_sizes))}"
                )
            wave += 1

        return results
