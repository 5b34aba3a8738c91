from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
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
    def from_exception(exc: BaseException, code: Optional[str] = None) -> "Result[T]":
        """Wrap an exception, taking the code from ``exc.error_code`` when present."""
        resolved = code or getattr(exc, "error_code", None) or "unknown"
        return Result(ok=False, error=str(exc) or exc.__class__.__name__, error_code=resolved)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
