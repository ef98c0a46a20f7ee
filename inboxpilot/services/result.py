from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Outcome of a call that may fail without raising."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)

    @staticmethod
    def from_exception(exc: Exception) -> "Result[T]":
        return Result(ok=False, error=str(exc), error_code=getattr(exc, "code", "unknown"))

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
