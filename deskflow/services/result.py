from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Value-or-reason for calls whose failure has a user-facing fallback."""

    ok: bool
    value: Optional[T] = None
    reason: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str, code: str = "unknown") -> "Result[T]":
        return cls(ok=False, reason=reason, code=code)

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        if not self.ok:
            return Result(ok=False, reason=self.reason, code=self.code)
        return Result.success(fn(self.value))

    def or_else(self, fallback: T) -> T:
        return self.value if self.ok else fallback
