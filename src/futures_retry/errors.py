"""Exceptions raised by the retry wrappers."""


class RetryError(Exception):
    """Base class for errors raised by futures_retry."""


class ForwardedError(RetryError):
    """
    An error handler gave up and forwarded an error.

    Attributes:
        error: The error chosen by the handler (not necessarily the one
            raised by the underlying awaitable)
        attempt: Number of the attempt that failed
    """

    def __init__(self, error: BaseException, attempt: int):
        super().__init__(f"attempt {attempt} failed: {error!r}")
        self.error = error
        self.attempt = attempt


class InvalidPolicyError(RetryError, TypeError):
    """An error handler returned something other than a RetryPolicy."""


class InvalidFactoryError(RetryError, TypeError):
    """A future factory returned something that can't be awaited."""
