"""Sequential chunked writes that stop at the first failing batch."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Sequence
from typing import TypeVar

from veritas.classes.outcome import SyncOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 500


def write_in_batches(
    items: Sequence[T],
    write: Callable[[Sequence[T]], object],
    batch_size: int = DEFAULT_BATCH_SIZE,
    label: str = "rows",
) -> SyncOutcome:
    """Write items in fixed-size batches. A failing batch aborts the rest; count covers earlier batches."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    written = 0
    total = len(items)
    for start in range(0, total, batch_size):
        batch = items[start : start + batch_size]
        try:
            write(batch)
        except sqlite3.Error as err:
            logger.error("batch write of %s failed after %d/%d: %s", label, written, total, err)
            return SyncOutcome(False, written, str(err))
        written += len(batch)
        logger.debug("wrote %d / %d %s", written, total, label)

    return SyncOutcome(True, written)
