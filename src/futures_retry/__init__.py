"""
Retry wrappers for asyncio futures and streams.

An error handler inspects every failure and returns a RetryPolicy:
repeat at once, wait and retry, or forward an error and give up.

- FutureRetry / retry_future / with_retry - retry awaitables created by a factory
- StreamRetry / retry_stream - keep polling a resumable async stream after errors
- IoErrorHandler / ExponentialBackoff - ready-made handlers
"""

from .errors import ForwardedError, InvalidFactoryError, InvalidPolicyError, RetryError
from .future import FutureRetry, retry_future, with_retry
from .handlers import ExponentialBackoff, IoErrorHandler, build_handler
from .policy import ErrorHandler, RetryAction, RetryPolicy, as_error_handler
from .stream import StreamRetry, iter_results, repeat_call, retry_stream

__version__ = "0.1.0"

__all__ = [
    # Policies
    "RetryAction",
    "RetryPolicy",
    "ErrorHandler",
    "as_error_handler",
    # Futures
    "FutureRetry",
    "retry_future",
    "with_retry",
    # Streams
    "StreamRetry",
    "retry_stream",
    "repeat_call",
    "iter_results",
    # Handlers
    "IoErrorHandler",
    "ExponentialBackoff",
    "build_handler",
    # Errors
    "RetryError",
    "ForwardedError",
    "InvalidPolicyError",
    "InvalidFactoryError",
]
