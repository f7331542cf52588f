"""
Window Algorithms

Sequence equivalents of SQL window functions (LAG, SUM OVER, AVG OVER with a
ROWS frame, RANK). Every function takes values already sorted by the window's
ORDER BY and makes a single pass. Nulls are treated the way SQL aggregates
treat them: skipped by sums and averages, propagated by arithmetic.
"""

from collections import deque
from itertools import groupby
from typing import Any, Callable, Deque, Hashable, List, Optional, Sequence

Number = float
Values = Sequence[Optional[Number]]


def lag(values: Values, offset: int = 1) -> List[Optional[Number]]:
    """Value `offset` positions earlier; None where there is no predecessor."""
    if offset < 1:
        raise ValueError("offset must be positive")
    n = len(values)
    return [None] * min(offset, n) + list(values[:max(n - offset, 0)])


def pct_change(current: Optional[Number], previous: Optional[Number], ndigits: int = 2) -> Optional[float]:
    """(current - previous) / previous * 100, or None when undefined."""
    if current is None or previous is None or previous == 0:
        return None
    return round((current - previous) * 100.0 / previous, ndigits)


def pct_changes(values: Values, ndigits: int = 2) -> List[Optional[float]]:
    """Period-over-period % change for a whole sequence."""
    return [pct_change(cur, prev, ndigits) for cur, prev in zip(values, lag(values))]


def running_total(values: Values) -> List[Optional[Number]]:
    """Prefix sums; null values add nothing, and the total is None until the first value."""
    totals = []
    accumulator = None
    for value in values:
        if value is not None:
            accumulator = value if accumulator is None else accumulator + value
        totals.append(accumulator)
    return totals


def _trailing(values: Values, window: int, reduce: Callable[[List[Number]], Any]) -> List[Any]:
    if window < 1:
        raise ValueError("window must be at least 1")

    buffer: Deque[Optional[Number]] = deque(maxlen=window)
    out = []
    for value in values:
        buffer.append(value)
        present = [v for v in buffer if v is not None]
        out.append(reduce(present) if present else None)
    return out


def moving_average(values: Values, window: int = 3, ndigits: Optional[int] = None) -> List[Optional[float]]:
    """
    Mean over the current value and up to `window - 1` preceding values.

    The first periods use the partial window available, so the first value
    is its own average.
    """
    def mean(present: List[Number]) -> float:
        avg = sum(present) / len(present)
        return round(avg, ndigits) if ndigits is not None else avg

    return _trailing(values, window, mean)


def moving_sum(values: Values, window: int = 3) -> List[Optional[Number]]:
    """Sum over the current value and up to `window - 1` preceding values."""
    return _trailing(values, window, sum)


def competition_rank(values: Values, descending: bool = True) -> List[int]:
    """
    Standard competition ranking: ties share a rank and the next rank skips
    by the size of the tie group (1, 1, 3). Nulls rank last.
    """
    present = sorted((v for v in values if v is not None), reverse=descending)

    first_position = {}
    for position, value in enumerate(present, start=1):
        first_position.setdefault(value, position)

    null_rank = len(present) + 1
    return [first_position[v] if v is not None else null_rank for v in values]


def contribution_pct(values: Values, ndigits: int = 2) -> List[Optional[float]]:
    """Share of each value in the partition total, as a rounded percentage."""
    total = sum(v for v in values if v is not None)
    if total == 0:
        return [None] * len(values)
    return [round(v * 100.0 / total, ndigits) if v is not None else None for v in values]


def partition_mean(values: Values) -> List[Optional[float]]:
    """Partition average broadcast to every row (AVG() OVER (PARTITION BY ...))."""
    present = [v for v in values if v is not None]
    mean = sum(present) / len(present) if present else None
    return [mean] * len(values)


def partition_total(values: Values) -> List[Number]:
    """Partition sum broadcast to every row (SUM() OVER (PARTITION BY ...))."""
    total = sum(v for v in values if v is not None)
    return [total] * len(values)


def apply_over_partitions(
    keys: Sequence[Hashable],
    values: Values,
    fn: Callable[[Values], List[Any]],
) -> List[Any]:
    """
    Apply a sequence algorithm to each contiguous run of equal keys.

    `keys` and `values` must already be sorted by (partition, order).
    """
    if len(keys) != len(values):
        raise ValueError("keys and values must have the same length")

    out: List[Any] = []
    position = 0
    for _, run in groupby(keys):
        size = sum(1 for _ in run)
        out.extend(fn(values[position:position + size]))
        position += size
    return out
