"""
Tagged results returned across the core boundary.

Components raise TwinLinkError subclasses internally. Their public
operations are wrapped with ``returns_result`` so callers always receive a
Result and decide for themselves whether to retry or surface the error.
"""
import functools
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from twinlink.core.exceptions import ErrorKind, TwinLinkError
from twinlink.core.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """
    Outcome of a core operation.

    Attributes:
        success: True when the operation applied (or was an idempotent no-op)
        value: Operation payload on success
        error: ErrorKind on failure
        message: Human-readable failure description
        retryable: Whether retrying the same call is meaningful
        cost: Store cost units consumed (observability only)
    """
    success: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None
    retryable: bool = False
    cost: float = 0.0

    @classmethod
    def ok(cls, value: T, cost: float = 0.0) -> "Result[T]":
        return cls(success=True, value=value, cost=cost)

    @classmethod
    def fail(
        cls,
        error: ErrorKind,
        message: str,
        retryable: bool = False
    ) -> "Result[T]":
        return cls(success=False, error=error, message=message, retryable=retryable)

    @classmethod
    def from_error(cls, exc: TwinLinkError) -> "Result[T]":
        return cls.fail(exc.error_code, exc.message, retryable=exc.retryable)


def returns_result(operation: str) -> Callable:
    """
    Decorate an async method so that it returns a Result.

    The wrapped coroutine returns either a plain value (wrapped with
    Result.ok), a CostedValue built by ``with_cost`` when the operation
    tracks store cost, or an already-built Result which is passed through.
    TwinLinkError becomes a tagged failure; anything else is logged with
    its traceback and reported as ErrorKind.INTERNAL.
    """
    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Result]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Result:
            try:
                value = await func(*args, **kwargs)
            except TwinLinkError as e:
                log_fn = logger.warning if e.retryable else logger.info
                log_fn(f"{operation} failed: {e.error_code.value}: {e.message}")
                return Result.from_error(e)
            except Exception as e:
                logger.exception(f"Unexpected error in {operation}: {e}")
                return Result.fail(ErrorKind.INTERNAL, f"{operation} failed unexpectedly")

            if isinstance(value, Result):
                return value
            if isinstance(value, CostedValue):
                return Result.ok(value.value, cost=value.cost)
            return Result.ok(value)
        return wrapper
    return decorator


@dataclass
class CostedValue(Generic[T]):
    """Value plus the store cost spent producing it."""
    value: T
    cost: float


def with_cost(value: T, cost: float) -> CostedValue[T]:
    return CostedValue(value=value, cost=cost)
