"""Retry policies and the error handler interface.

An error handler looks at every failure and decides which route to take:
simply try again, wait and then try, or give up (on a critical error for
example) and forward an error to the caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Optional, Union

from .errors import InvalidPolicyError


class RetryAction(str, Enum):
    """What to do after a failed attempt."""

    REPEAT = "repeat"
    WAIT_RETRY = "wait_retry"
    FORWARD_ERROR = "forward_error"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Decision returned by an error handler.

    Use the constructors instead of instantiating directly:

        RetryPolicy.repeat()
        RetryPolicy.wait_retry(0.5)
        RetryPolicy.forward_error(exc)
    """

    action: RetryAction
    delay: Optional[float] = None  # seconds, WAIT_RETRY only
    error: Optional[BaseException] = None  # FORWARD_ERROR only

    def __post_init__(self):
        """Check that `delay` and `error` match the action."""
        action = RetryAction(self.action)
        object.__setattr__(self, "action", action)

        if action is RetryAction.WAIT_RETRY:
            if self.delay is None or self.delay < 0:
                raise ValueError(f"Retry delay must be non-negative, got {self.delay}")
        elif self.delay is not None:
            raise ValueError(f"{action.value} policy takes no delay")

        if action is RetryAction.FORWARD_ERROR:
            if not isinstance(self.error, BaseException):
                raise ValueError(f"forward_error policy needs an exception, got {self.error!r}")
        elif self.error is not None:
            raise ValueError(f"{action.value} policy takes no error")

    @classmethod
    def repeat(cls) -> "RetryPolicy":
        """Try again immediately."""
        return cls(RetryAction.REPEAT)

    @classmethod
    def wait_retry(cls, delay: Union[float, timedelta]) -> "RetryPolicy":
        """Wait for `delay` (seconds or timedelta) and try again."""
        if isinstance(delay, timedelta):
            delay = delay.total_seconds()
        return cls(RetryAction.WAIT_RETRY, delay=float(delay))

    @classmethod
    def forward_error(cls, error: BaseException) -> "RetryPolicy":
        """Stop retrying and surface `error`."""
        return cls(RetryAction.FORWARD_ERROR, error=error)

    def describe(self) -> str:
        """Short human readable form, used in log records."""
        if self.action is RetryAction.WAIT_RETRY:
            return f"wait_retry({self.delay:.3f}s)"
        return self.action.value


class ErrorHandler(ABC):
    """
    Decides on a retry policy depending on an encountered error.

    Subclass it for stateful handlers (e.g. ones counting consecutive
    failures). Plain callables taking just the error are accepted anywhere a
    handler is expected, see `as_error_handler`.
    """

    @abstractmethod
    def handle(self, attempt: int, error: Exception) -> RetryPolicy:
        """
        Handle a failure.

        Args:
            attempt: 1-based number of the attempt that failed
            error: Exception raised by the attempt

        Returns:
            Policy to apply
        """

    def ok(self, attempt: int) -> None:
        """Called when an attempt succeeds."""


class FunctionHandler(ErrorHandler):
    """Adapts a callable `f(error) -> RetryPolicy` to the ErrorHandler interface."""

    def __init__(self, func: Callable[[Exception], RetryPolicy]):
        self.func = func

    def handle(self, attempt: int, error: Exception) -> RetryPolicy:
        return self.func(error)

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", repr(self.func))
        return f"FunctionHandler({name})"


ErrorAction = Union[ErrorHandler, Callable[[Exception], RetryPolicy]]


def as_error_handler(error_action: Any) -> ErrorHandler:
    """Wrap `error_action` into an ErrorHandler if it isn't one already."""
    if isinstance(error_action, ErrorHandler):
        return error_action
    if callable(error_action):
        return FunctionHandler(error_action)
    raise TypeError(
        f"Expected an ErrorHandler or a callable, got {type(error_action).__name__}"
    )


def check_policy(policy: Any, handler: ErrorHandler) -> RetryPolicy:
    """Make sure a handler returned a RetryPolicy."""
    if not isinstance(policy, RetryPolicy):
        raise InvalidPolicyError(
            f"{handler!r} returned {type(policy).__name__}, expected RetryPolicy"
        )
    return policy
