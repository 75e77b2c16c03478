"""Unit tests for StreamRetry and the resumable stream sources."""

import asyncio

import pytest

from futures_retry import (
    ErrorHandler,
    ForwardedError,
    RetryPolicy,
    StreamRetry,
    iter_results,
    repeat_call,
    retry_stream,
)


async def collect(stream):
    return [item async for item in stream]


def repeat(_):
    return RetryPolicy.repeat()


class CountingHandler(ErrorHandler):
    """Repeats everything and records attempt numbers."""

    def __init__(self):
        self.failures = []
        self.successes = []

    def handle(self, attempt, error):
        self.failures.append(attempt)
        return RetryPolicy.repeat()

    def ok(self, attempt):
        self.successes.append(attempt)


class TestStreamRetry:
    """Tests for StreamRetry."""

    @pytest.mark.asyncio
    async def test_naive(self):
        """Items are yielded with attempt 1 when nothing fails."""
        retry = StreamRetry(iter_results([17, 19]), repeat)

        assert await collect(retry) == [(17, 1), (19, 1)]

    @pytest.mark.asyncio
    async def test_repeat(self):
        """A repeated failure shows up in the next item's attempt."""
        retry = StreamRetry(iter_results([1, ValueError(17), 19]), repeat)

        assert await collect(retry) == [(1, 1), (19, 2)]

    @pytest.mark.asyncio
    async def test_wait(self):
        """wait_retry sleeps before polling again."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        retry = StreamRetry(
            iter_results([ValueError(17), 19]),
            lambda e: RetryPolicy.wait_retry(0.05),
        )

        assert await collect(retry) == [(19, 2)]
        assert loop.time() - started >= 0.04

    @pytest.mark.asyncio
    async def test_propagate(self):
        """forward_error makes the current step raise ForwardedError."""
        error = ValueError(17)
        retry = StreamRetry(iter_results([error, 19]), RetryPolicy.forward_error)

        with pytest.raises(ForwardedError) as exc_info:
            await retry.__anext__()

        assert exc_info.value.error is error
        assert exc_info.value.attempt == 1

    @pytest.mark.asyncio
    async def test_stream_continues_after_forward(self):
        """The counter stays advanced after a forwarded error."""
        retry = StreamRetry(iter_results([ValueError(17), 19]), RetryPolicy.forward_error)

        with pytest.raises(ForwardedError):
            await retry.__anext__()

        assert await retry.__anext__() == (19, 2)

    @pytest.mark.asyncio
    async def test_counter_reset_after_item(self):
        """The counter goes back to 1 after every item."""
        handler = CountingHandler()
        items = [ValueError(), ValueError(), "a", ValueError(), "b"]

        result = await collect(StreamRetry(iter_results(items), handler))

        assert result == [("a", 3), ("b", 2)]
        assert handler.failures == [1, 2, 1]
        assert handler.successes == [3, 2]

    @pytest.mark.asyncio
    async def test_custom_attempt_counter(self):
        """The attempt counter can start above 1."""
        retry = StreamRetry(iter_results(["x", "y"]), repeat, attempt=3)

        assert await collect(retry) == [("x", 3), ("y", 1)]

    def test_attempt_counter_must_be_positive(self):
        """An attempt counter below 1 is refused."""
        with pytest.raises(ValueError):
            StreamRetry(iter_results([]), repeat, attempt=0)

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        """An empty source gives an empty retry stream."""
        assert await collect(StreamRetry(iter_results([]), repeat)) == []

    @pytest.mark.asyncio
    async def test_async_generator_ends_after_error(self):
        """Async generators can't be resumed once they raised."""

        async def source():
            yield 1
            raise ValueError("done for")

        retry = StreamRetry(source(), repeat)

        assert await collect(retry) == [(1, 1)]

    @pytest.mark.asyncio
    async def test_retry_stream_helper(self):
        """retry_stream() builds a StreamRetry."""
        retry = retry_stream(iter_results([ValueError(), 5]), repeat)

        assert isinstance(retry, StreamRetry)
        assert await collect(retry) == [(5, 2)]


class TestSources:
    """Tests for repeat_call and iter_results."""

    @pytest.mark.asyncio
    async def test_repeat_call_survives_errors(self):
        """repeat_call keeps calling after failures."""
        calls = []

        async def accept(prefix):
            calls.append(prefix)
            if len(calls) in (1, 2):
                raise ConnectionAbortedError()
            return f"{prefix}{len(calls)}"

        retry = retry_stream(repeat_call(accept, "conn-"), repeat)

        assert await retry.__anext__() == ("conn-3", 3)
        assert await retry.__anext__() == ("conn-4", 1)
        assert calls == ["conn-"] * 4

    @pytest.mark.asyncio
    async def test_iter_results_raises_exceptions(self):
        """iter_results raises exception items and ends after the last one."""
        source = iter_results([1, KeyError("k"), 2])

        assert await source.__anext__() == 1
        with pytest.raises(KeyError):
            await source.__anext__()
        assert await source.__anext__() == 2
        with pytest.raises(StopAsyncIteration):
            await source.__anext__()
