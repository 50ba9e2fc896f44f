"""Lightweight Result types (Ok/Err)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeGuard, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: Exception

    @property
    def error_code(self) -> Optional[str]:
        """``error_code`` of a PatcherError, ``None`` for foreign exceptions."""
        return getattr(self.error, "error_code", None)


Result = Union[Ok[T], Err]


def is_ok(result: Result[T]) -> TypeGuard[Ok[T]]:
    return isinstance(result, Ok)


def is_err(result: Result[T]) -> TypeGuard[Err]:
    return isinstance(result, Err)


def unwrap(result: Result[T]) -> T:
    if isinstance(result, Ok):
        return result.value
    raise result.error


def unwrap_or(result: Result[T], default: T) -> T:
    if isinstance(result, Ok):
        return result.value
    return default


def error_message(result: Result[T]) -> Optional[str]:
    if isinstance(result, Err):
        return str(result.error)
    return None


def error_details(result: Result[T]) -> Optional[Dict[str, Any]]:
    """Structured error payload; foreign exceptions are reported as ``UNEXPECTED_ERROR``."""
    if not isinstance(result, Err):
        return None
    to_dict = getattr(result.error, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return {
        "error_code": "UNEXPECTED_ERROR",
        "message": str(result.error),
        "details": {"exception": type(result.error).__name__},
    }
