"""Result values returned across I/O boundaries instead of raised errors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Outcome:
    success: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, value: Any = None) -> "Outcome":
        return cls(True, value)

    @classmethod
    def failed(cls, error: Exception | str, value: Any = None) -> "Outcome":
        return cls(False, value, str(error))


@dataclass(frozen=True)
class SyncOutcome:
    """Result of a batched write; count is the number of rows written before any failure."""

    success: bool
    count: int = 0
    error: str | None = None
