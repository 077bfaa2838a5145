"""Unit tests for chunked aggregate dispatch with fallback."""

from __future__ import annotations

import logging

import pytest

from conftest import FakeAggregator, TOKEN_RESPONSES
from core.errors import ConfigurationError, ExhaustedFallback
from core.network.calls import RawCallItem
from core.network.chunking import (
    ChunkedAggregator,
    ChunkTask,
    remove_oversized_chunks,
    validate_chunk_sizes,
)


def repeated_items(count: int) -> list[RawCallItem]:
    """`count` items cycling through the known token responses"""
    keys = list(TOKEN_RESPONSES)
    return [RawCallItem(*keys[i % len(keys)]) for i in range(count)]


class TestRemoveOversizedChunks:
    """Test capping of the chunk size ladder."""

    def test_oversized_sizes_replaced_by_call_count(self):
        """Sizes above the call count collapse into one entry equal to it."""
        assert remove_oversized_chunks(150, [600, 400, 300, 100, 50, 25]) == [150, 100, 50, 25]

    def test_ladder_without_oversized_sizes_unchanged(self):
        """A ladder that fits is returned as is."""
        assert remove_oversized_chunks(150, [100, 80, 50]) == [100, 80, 50]

    def test_size_equal_to_call_count_is_not_oversized(self):
        """Equality does not count as oversized."""
        assert remove_oversized_chunks(150, [150, 100, 80, 50]) == [150, 100, 80, 50]

    def test_all_sizes_oversized(self):
        """Every size too large leaves just the call count."""
        assert remove_oversized_chunks(3, [300, 100, 25]) == [3]


class TestValidateChunkSizes:
    """Test ladder validation."""

    @pytest.mark.parametrize("sizes", [[], [0], [100, -1], ["25"], [2.5], [True], None])
    def test_invalid_ladders_rejected(self, sizes):
        """Empty, non-integer or non-positive ladders raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            validate_chunk_sizes(sizes)

    def test_valid_ladder_returned_as_list(self):
        """Tuples and unsorted ladders are accepted in the given order."""
        assert validate_chunk_sizes((25, 300, 100)) == [25, 300, 100]


class TestChunkedAggregator:
    """Test ChunkedAggregator dispatch and fallback."""

    def test_partition_uses_capped_leading_size(self):
        """A task splits into consecutive chunks, the last one shorter."""
        aggregator = ChunkedAggregator(FakeAggregator({}), [4, 1])
        chunks = aggregator.partition(ChunkTask(offset=10, items=repeated_items(10), chunk_sizes=[4, 1]))

        assert [chunk.offset for chunk in chunks] == [10, 14, 18]
        assert [len(chunk.items) for chunk in chunks] == [4, 4, 2]
        assert all(chunk.remaining_sizes == [1] for chunk in chunks)

    @pytest.mark.asyncio
    async def test_empty_calls_dispatch_nothing(self):
        """No calls means no requests and an empty result."""
        fake = FakeAggregator({})
        assert await ChunkedAggregator(fake, [300, 100, 25]).run([]) == []
        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_single_chunk_when_ladder_exceeds_calls(self):
        """Fewer calls than the first size are sent in one request."""
        fake = FakeAggregator(dict(TOKEN_RESPONSES))
        items = repeated_items(18)

        await ChunkedAggregator(fake, [300, 100, 25]).run(items)

        assert fake.request_sizes == [18]

    @pytest.mark.asyncio
    async def test_chunked_result_matches_unchunked(self):
        """Results via chunks equal one unchunked request, in order."""
        fake = FakeAggregator(dict(TOKEN_RESPONSES))
        items = repeated_items(18)

        whole = await fake(items)
        chunked = await ChunkedAggregator(fake, [4, 1, 1, 1, 1]).run(items)

        assert chunked == whole
        assert fake.request_sizes[1:] == [4, 4, 4, 4, 2]

    @pytest.mark.asyncio
    async def test_only_failed_chunks_are_retried(self):
        """Successful chunks are kept while failing ones shrink."""
        items = repeated_items(10)
        bad = items[5]
        fake = FakeAggregator(
            dict(TOKEN_RESPONSES),
            fail=lambda chunk: len(chunk) > 1 and any(item is bad for item in chunk),
        )

        result = await ChunkedAggregator(fake, [4, 1]).run(items)

        assert result == await FakeAggregator(dict(TOKEN_RESPONSES))(items)
        assert fake.request_sizes == [4, 4, 2, 1, 1, 1, 1]

    @pytest.mark.asyncio
    async def test_fallback_progresses_down_the_ladder(self):
        """Sizes 300 and 100 always fail, 25 succeeds, attempts stay bounded."""
        items = repeated_items(600)
        fake = FakeAggregator(dict(TOKEN_RESPONSES), fail=lambda chunk: len(chunk) > 25)

        result = await ChunkedAggregator(fake, [300, 100, 25]).run(items)

        assert result == await FakeAggregator(dict(TOKEN_RESPONSES))(items)
        assert fake.request_sizes == [300] * 2 + [100] * 6 + [25] * 24

    @pytest.mark.asyncio
    async def test_exhausted_ladder_raises(self):
        """A single size ladder that fails everywhere is terminal."""
        fake = FakeAggregator(dict(TOKEN_RESPONSES), fail=lambda chunk: True)

        with pytest.raises(ExhaustedFallback):
            await ChunkedAggregator(fake, [25]).run(repeated_items(60))

        # Every chunk of the wave is awaited before failing
        assert fake.request_sizes == [25, 25, 10]

    @pytest.mark.asyncio
    async def test_failure_at_last_size_raises_even_when_siblings_succeed(self):
        """One chunk failing at the smallest size fails the whole run."""
        items = repeated_items(10)
        bad = items[9]
        fake = FakeAggregator(
            dict(TOKEN_RESPONSES),
            fail=lambda chunk: any(item is bad for item in chunk),
        )

        with pytest.raises(ExhaustedFallback) as exc_info:
            await ChunkedAggregator(fake, [4, 2]).run(items)

        assert exc_info.value.size == 2
        assert fake.request_sizes == [4, 4, 2, 2]

    @pytest.mark.asyncio
    async def test_wrong_result_length_counts_as_failure(self):
        """A response that does not match the request length is retried."""
        fake = FakeAggregator(dict(TOKEN_RESPONSES))

        async def truncating(items):
            result = await fake(items)
            return result[:-1] if len(items) > 1 else result

        items = repeated_items(3)
        result = await ChunkedAggregator(truncating, [3, 1]).run(items)

        assert len(result) == 3
        assert fake.request_sizes == [3, 1, 1, 1]

    @pytest.mark.asyncio
    async def test_run_accepts_ladder_override(self):
        """A per-run ladder replaces the configured one."""
        fake = FakeAggregator(dict(TOKEN_RESPONSES))
        await ChunkedAggregator(fake, [300]).run(repeated_items(6), chunk_sizes=[2])

        assert fake.request_sizes == [2, 2, 2]

    @pytest.mark.asyncio
    async def test_retry_warning_reports_capped_size(self, caplog):
        """A 2-call tail with ladder [3] left is logged and retried as size 2."""
        items = repeated_items(6)
        failed_tail = []

        def fail_tail_once(chunk):
            if len(chunk) == 2 and not failed_tail:
                failed_tail.append(chunk)
                return True
            return False

        fake = FakeAggregator(dict(TOKEN_RESPONSES), fail=fail_tail_once)

        with caplog.at_level(logging.WARNING, logger="core.network.chunking"):
            await ChunkedAggregator(fake, [4, 3]).run(items)

        assert fake.request_sizes == [4, 2, 2]
        assert "retrying with chunk size 2" in caplog.text
        assert "chunk size 3" not in caplog.text
