from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, ParamSpec, TypeVar

from pydantic import BaseModel

from dictionary_review.services.errors import ErrorKind, ModerationError

T = TypeVar("T")
P = ParamSpec("P")

logger = logging.getLogger(__name__)


class OperationResult(BaseModel, Generic[T]):
    """Outcome of a service call; callers branch on ``error_kind``."""

    success: bool
    value: T | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None

    @classmethod
    def ok(cls, value: T) -> OperationResult[T]:
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error_kind: ErrorKind, message: str) -> OperationResult[T]:
        return cls(success=False, error_kind=error_kind, message=message)

    def unwrap(self) -> T:
        if not self.success:
            raise RuntimeError(f"{self.error_kind}: {self.message}")
        return self.value  # type: ignore[return-value]


def as_result(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[OperationResult[Any]]]:
    """Convert raised moderation errors into failed results at the service boundary."""

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> OperationResult[Any]:
        try:
            value = await func(*args, **kwargs)
        except ModerationError as exc:
            logger.info("moderation operation failed op=%s kind=%s message=%s", func.__name__, exc.kind, exc)
            return OperationResult.fail(exc.kind, str(exc))
        return OperationResult.ok(value)

    return wrapper
