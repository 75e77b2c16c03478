"""Ready-made error handlers."""

import errno
import logging
import math

from .policy import ErrorHandler, RetryPolicy

logger = logging.getLogger(__name__)

# Transient socket failures that are worth retrying straight away
REPEAT_ERRORS = (
    InterruptedError,
    ConnectionRefusedError,
    ConnectionResetError,
    ConnectionAbortedError,
    BrokenPipeError,
)
REPEAT_ERRNOS = {errno.ENOTCONN}


class IoErrorHandler(ErrorHandler):
    """
    An I/O errors handler that counts consecutive failed attempts.

    Transient connection errors are repeated at once, permission errors are
    forwarded, anything else is retried after a growing delay. After
    `max_attempts` consecutive failures the error is forwarded. The counter
    is reset whenever an attempt succeeds.
    """

    def __init__(
        self,
        max_attempts: int,
        display_name: str,
        min_wait: float = 0.005,
        max_wait: float = 1.0,
    ):
        """
        Initialize handler.

        Args:
            max_attempts: Consecutive failures tolerated before giving up
            display_name: Name used in log messages
            min_wait: Delay after the first failure (seconds)
            max_wait: Upper bound the delay approaches (seconds)
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if max_wait < min_wait:
            raise ValueError("max_wait must not be lower than min_wait")
        self.max_attempts = max_attempts
        self.display_name = display_name
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.current_attempt = 0

    def calculate_wait_duration(self) -> float:
        """
        Calculate a delay before a retry based on the current failure number.

        atan() makes the delay grow fast from `min_wait` towards `max_wait`
        without ever exceeding it. With the defaults: 5 ms on the first
        failure, about 502 ms on the second, 706 ms on the third and about
        930 ms by the tenth.
        """
        fraction = math.atan(self.current_attempt - 1) * (2 / math.pi)
        return self.min_wait + fraction * (self.max_wait - self.min_wait)

    @staticmethod
    def is_transient(error: Exception) -> bool:
        """Whether `error` is a connection hiccup that should be repeated at once."""
        if isinstance(error, REPEAT_ERRORS):
            return True
        return isinstance(error, OSError) and error.errno in REPEAT_ERRNOS

    def handle(self, attempt: int, error: Exception) -> RetryPolicy:
        self.current_attempt += 1
        extra = {
            "attempt": self.current_attempt,
            "max_attempts": self.max_attempts,
            "handler": self.display_name,
        }
        if self.current_attempt > self.max_attempts:
            logger.error(
                f"[{self.display_name}] All attempts ({self.max_attempts}) have been used up",
                extra=extra,
            )
            return RetryPolicy.forward_error(error)

        logger.warning(
            f"[{self.display_name}] Attempt {self.current_attempt}/{self.max_attempts} has failed: {error}",
            extra=extra,
        )
        if self.is_transient(error):
            return RetryPolicy.repeat()
        if isinstance(error, PermissionError):
            return RetryPolicy.forward_error(error)
        return RetryPolicy.wait_retry(self.calculate_wait_duration())

    def ok(self, attempt: int) -> None:
        self.current_attempt = 0


class ExponentialBackoff(ErrorHandler):
    """
    Waits exponentially longer after each failed attempt.

    Errors that are not instances of `retry_on` are forwarded immediately,
    as is the failure of attempt number `max_attempts`.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        retry_on: tuple = (Exception,),
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_on = retry_on

    def get_backoff_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def handle(self, attempt: int, error: Exception) -> RetryPolicy:
        if not isinstance(error, self.retry_on):
            return RetryPolicy.forward_error(error)
        if attempt >= self.max_attempts:
            logger.error(
                f"Giving up after {attempt} attempts: {error}",
                extra={"attempt": attempt, "max_attempts": self.max_attempts},
            )
            return RetryPolicy.forward_error(error)

        delay = self.get_backoff_delay(attempt)
        logger.warning(
            f"Attempt {attempt}/{self.max_attempts} failed: {error}, retrying in {delay:.1f}s",
            extra={"attempt": attempt, "max_attempts": self.max_attempts, "delay": delay},
        )
        return RetryPolicy.wait_retry(delay)


def build_handler(config, display_name: str) -> ErrorHandler:
    """
    Build an error handler from a HandlerConfig.

    Args:
        config: HandlerConfig section of the configuration
        display_name: Name used in log messages

    Returns:
        IoErrorHandler for the "io" strategy, ExponentialBackoff for "exponential"
    """
    if config.strategy == "exponential":
        return ExponentialBackoff(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
        )
    return IoErrorHandler(
        config.max_attempts,
        display_name,
        min_wait=config.min_wait,
        max_wait=config.max_wait,
    )
