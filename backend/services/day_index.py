"""
Queries over the day boundaries produced by the balance engine.

All functions are pure so playback code can call them on every tick.
"""

from bisect import bisect_right
from datetime import datetime, timezone
from typing import List, Mapping, Optional, Sequence

from dateutil import parser as date_parser

from services.config import FlowConfig
from services.ingestion import Transaction
from services.time_series import TimeSeries


def day_index_at_time(day_boundaries: Sequence[int], t: float) -> int:
    """
    Index of the latest boundary ``<= t``.

    Clamped to 0 when *t* precedes every boundary (or there are none) and to
    the last index when it follows every boundary.
    """
    if not day_boundaries:
        return 0
    index = bisect_right(day_boundaries, t) - 1
    return min(max(index, 0), len(day_boundaries) - 1)


def transactions_for_day(
    day_boundaries: Sequence[int],
    day_index: int,
    transactions: Sequence[Transaction],
    config: Optional[FlowConfig] = None,
) -> List[Transaction]:
    """
    Transactions with ``boundary[day_index] <= timestamp < boundary[day_index] + day``.

    Index 0 is the padding bucket before the first transaction and is always
    empty. Out-of-range indices also return an empty list.
    """
    if day_index <= 0 or day_index >= len(day_boundaries):
        return []
    config = config or FlowConfig()
    start = day_boundaries[day_index]
    end = start + config.day_ms
    return [tx for tx in transactions if start <= tx.timestamp < end]


_PARSE_DEFAULT = datetime(1970, 1, 1)


def _utc_midnight_ms(requested: str) -> Optional[int]:
    # Missing fields come from the epoch, not today
    try:
        parsed = date_parser.parse(requested, default=_PARSE_DEFAULT)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    midnight = datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
    return int(midnight.timestamp() * 1000)


def nearest_day_from_date(
    requested_date: Optional[str],
    day_boundaries: Sequence[int],
    config: Optional[FlowConfig] = None,
) -> int:
    """
    Resolve a calendar date (e.g. ``2025-09-20``) to a boundary timestamp.

    Order of preference:
      1. the earliest boundary falling on that UTC day;
      2. midnight of that day when it lies strictly inside the data range;
      3. the first boundary.

    Missing or unparsable input resolves to the first boundary, or 0 when
    there are no boundaries.
    """
    if not day_boundaries:
        return 0
    config = config or FlowConfig()
    min_ts = min(day_boundaries)
    max_ts = max(day_boundaries)

    if not requested_date or not requested_date.strip():
        return min_ts
    day_start = _utc_midnight_ms(requested_date.strip())
    if day_start is None:
        return min_ts
    day_end = day_start + config.day_ms

    same_day = [ts for ts in day_boundaries if day_start <= ts < day_end]
    if same_day:
        return min(same_day)
    if min_ts < day_start < max_ts:
        return day_start
    return min_ts


def balances_at_time(
    series: TimeSeries,
    day_boundaries: Sequence[int],
    t: float,
) -> Mapping[str, float]:
    """Snapshot of the bucket containing *t*; empty when there is no series."""
    if not day_boundaries:
        return {}
    return series.get(day_boundaries[day_index_at_time(day_boundaries, t)], {})
