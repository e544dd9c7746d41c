"""Tagged result for read paths that must never take the device offline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Iterator, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """Rows read from local storage, or an empty list tagged with the failure.

    Iterating a failed result yields nothing, so callers that only need a safe
    default can treat it like a list. Callers that care check :attr:`ok`.
    """

    items: List[T] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, error: BaseException) -> "ReadResult[T]":
        return cls(items=[], error=error)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)
