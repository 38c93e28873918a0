"""
procgate.results

Explicit success/failure results for lookups whose failure is an expected outcome.

Responsibilities:
- Provide `Ok` / `Err` variants so callers must branch on the failure path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from procgate.errors import ErrorKind, Failure

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Err:
    failure: Failure

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.failure.kind


Result = Ok[T] | Err


def err(kind: ErrorKind, message: str, details: dict[str, Any] | None = None) -> Err:
    return Err(Failure(kind=kind, message=message, details=details))


# --- Module Notes -----------------------------------------------------------
# Pattern-match with `isinstance(result, Err)`; `Ok.value` is only read after that check.
