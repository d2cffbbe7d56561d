from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a feed operation: a value on success, an error otherwise."""

    success: bool
    value: Optional[T] = None
    error: Optional[Exception] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: Exception) -> "Result[T]":
        return cls(success=False, error=error)

    @property
    def is_failure(self) -> bool:
        return not self.success

    def unwrap(self) -> T:
        if not self.success:
            raise ValueError("Cannot get value from failed result") from self.error
        return self.value  # type: ignore[return-value]

    @property
    def error_message(self) -> str:
        if self.error is None:
            return ""
        return getattr(self.error, "message", None) or str(self.error)
