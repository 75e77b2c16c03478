"""Retrying async streams.

Unlike FutureRetry, no factory is needed here: a stream is a natural
producer of new items, so it isn't recreated when an error is encountered.
The source has to be resumable, i.e. its `__anext__` may raise and then be
called again. Async generators are not: once one raises it is finished, and
repeating it just ends the retry stream. `repeat_call` and `iter_results`
build resumable sources.
"""

import asyncio
import logging
from typing import Any, AsyncIterable, Awaitable, Callable, Generic, Iterable, TypeVar

from .errors import ForwardedError
from .policy import ErrorAction, RetryAction, as_error_handler, check_policy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StreamRetry(Generic[T]):
    """
    Handles errors raised while iterating an async stream, with an option to
    wait before polling for the next item.

    Iterating yields `(item, attempt)` pairs. The attempt counter is reset to
    1 after every item. When the handler gives up, the current step raises
    ForwardedError; the stream stays usable and a further step resumes
    polling the source.

    A typical usage is recovering from connection errors while accepting
    connections on a server:

        accepted = retry_stream(repeat_call(loop.sock_accept, sock), handle_error)
        async for (conn, addr), attempt in accepted:
            ...
    """

    def __init__(self, stream: AsyncIterable[T], error_action: ErrorAction, attempt: int = 1):
        """
        Args:
            stream: Resumable async iterable of items
            error_action: ErrorHandler or callable deciding on a retry policy
            attempt: Initial value of the attempt counter
        """
        if attempt < 1:
            raise ValueError(f"Attempt counter must start at 1 or above, got {attempt}")
        self._iterator = stream.__aiter__()
        self.handler = as_error_handler(error_action)
        self.attempt = attempt

    def __aiter__(self) -> "StreamRetry[T]":
        return self

    async def __anext__(self) -> tuple[T, int]:
        while True:
            attempt = self.attempt
            try:
                item = await self._iterator.__anext__()
            except StopAsyncIteration:
                raise
            except Exception as e:
                self.attempt += 1
                policy = check_policy(self.handler.handle(attempt, e), self.handler)
                logger.debug(
                    f"Stream attempt {attempt} failed with {e!r}, policy: {policy.describe()}",
                    extra={"attempt": attempt, "policy": policy.action.value},
                )
                if policy.action is RetryAction.FORWARD_ERROR:
                    raise ForwardedError(policy.error, attempt) from policy.error
                if policy.action is RetryAction.WAIT_RETRY:
                    await asyncio.sleep(policy.delay)
                continue

            self.attempt = 1
            self.handler.ok(attempt)
            return item, attempt


def retry_stream(stream: AsyncIterable[T], error_action: ErrorAction, attempt: int = 1) -> StreamRetry[T]:
    """Wrap `stream` into a StreamRetry."""
    return StreamRetry(stream, error_action, attempt)


class repeat_call(Generic[T]):
    """
    Endless resumable stream: every step awaits `func(*args)`.

    An exception raised by one call doesn't end the stream, the next step
    just calls `func` again.
    """

    def __init__(self, func: Callable[..., Awaitable[T]], *args: Any):
        self.func = func
        self.args = args

    def __aiter__(self) -> "repeat_call[T]":
        return self

    async def __anext__(self) -> T:
        return await self.func(*self.args)


class iter_results(Generic[T]):
    """
    Resumable stream over a sequence of outcomes.

    Items that are exceptions are raised instead of being yielded, so
    `iter_results([1, ValueError("x"), 2])` yields 1, fails once and then
    yields 2.
    """

    def __init__(self, items: Iterable[Any]):
        self._items = iter(items)

    def __aiter__(self) -> "iter_results[T]":
        return self

    async def __anext__(self) -> T:
        try:
            item = next(self._items)
        except StopIteration:
            raise StopAsyncIteration from None
        if isinstance(item, BaseException):
            raise item
        return item
