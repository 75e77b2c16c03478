"""Retrying awaitables.

A failed awaitable can't be awaited again, so the retry logic needs a
factory that creates a fresh one for every attempt. Any zero-argument
callable returning an awaitable will do, a coroutine function included.
"""

import asyncio
import inspect
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Generator, Generic, TypeVar

from .errors import ForwardedError, InvalidFactoryError
from .policy import ErrorAction, RetryAction, as_error_handler, check_policy

logger = logging.getLogger(__name__)

T = TypeVar("T")

FutureFactory = Callable[[], Awaitable[T]]


class FutureRetry(Generic[T]):
    """
    Transparently launches an awaitable (created by a factory each time) as
    many times as needed to get things done.

    Useful for establishing connections, RPC calls and the like. Awaiting a
    FutureRetry gives `(result, attempt)`, where `attempt` is the number of
    the attempt that succeeded. When the handler gives up, ForwardedError is
    raised with the forwarded error and the number of the failed attempt.

    Example:
        reader_writer, attempt = await FutureRetry(
            lambda: asyncio.open_connection(host, port),
            IoErrorHandler(3, "Connecting"),
        )
    """

    def __init__(self, factory: FutureFactory, error_action: ErrorAction, attempt: int = 1):
        """
        Args:
            factory: Zero-argument callable creating a new awaitable per attempt
            error_action: ErrorHandler or callable deciding on a retry policy
            attempt: Initial value of the attempt counter
        """
        if attempt < 1:
            raise ValueError(f"Attempt counter must start at 1 or above, got {attempt}")
        self.factory = factory
        self.handler = as_error_handler(error_action)
        self.attempt = attempt

    def _new_future(self) -> Awaitable[T]:
        awaitable = self.factory()
        if not inspect.isawaitable(awaitable):
            raise InvalidFactoryError(
                f"Factory {self.factory!r} returned {type(awaitable).__name__}, "
                f"expected an awaitable"
            )
        return awaitable

    async def run(self) -> tuple[T, int]:
        """Run attempts until one succeeds or the handler forwards an error."""
        while True:
            attempt = self.attempt
            future = self._new_future()
            try:
                value = await future
            except Exception as e:
                self.attempt += 1
                policy = check_policy(self.handler.handle(attempt, e), self.handler)
                logger.debug(
                    f"Attempt {attempt} failed with {e!r}, policy: {policy.describe()}",
                    extra={"attempt": attempt, "policy": policy.action.value},
                )
                if policy.action is RetryAction.FORWARD_ERROR:
                    raise ForwardedError(policy.error, attempt) from policy.error
                if policy.action is RetryAction.WAIT_RETRY:
                    await asyncio.sleep(policy.delay)
                continue

            self.handler.ok(attempt)
            return value, attempt

    def __await__(self) -> Generator[Any, None, tuple[T, int]]:
        return self.run().__await__()


async def retry_future(
    factory: FutureFactory,
    error_action: ErrorAction,
    attempt: int = 1,
) -> tuple[T, int]:
    """Shorthand for `await FutureRetry(factory, error_action, attempt)`."""
    return await FutureRetry(factory, error_action, attempt)


def with_retry(error_action: ErrorAction):
    """
    Decorator for retrying coroutine functions.

    Every call of the decorated function runs through FutureRetry with the
    same handler, so a stateful handler is shared between calls. The
    decorated function returns the bare result, and when the handler gives
    up the forwarded error itself is raised.
    """
    handler = as_error_handler(error_action)

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                value, _ = await FutureRetry(lambda: func(*args, **kwargs), handler)
            except ForwardedError as e:
                raise e.error
            return value

        return wrapper

    return decorator
