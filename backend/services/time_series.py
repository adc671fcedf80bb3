"""
Day-bucketed balance engine.

Walks the chronologically ordered transaction log once and records, at each
day boundary, a frozen copy of every tracked address's balance.

Bucketing rules:

- The first boundary is ``first.timestamp - day``; it carries the initial
  balances before any transfer.
- A transaction whose timestamp is at or past ``boundary + day`` closes the
  pending bucket (snapshot stored under ``boundary``) and moves the boundary
  to that transaction's own timestamp. Days without transactions get no
  bucket of their own.
- After the last transaction a final snapshot is stored under the last
  boundary.

The reward address receives ``floor((boundary - reward_start) / day) *
daily_reward`` on each snapshot taken strictly after ``reward_start``. The
credit is written to the snapshot copy only; the live balances that drive
transfer accounting never see it.
"""

from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from services.config import FlowConfig
from services.errors import InvalidArgumentError
from services.ingestion import Transaction, ensure_sorted
from services.logger import get_logger

logger = get_logger(__name__)

TimeSeries = Dict[int, Mapping[str, float]]


def reward_for_boundary(boundary: int, config: Optional[FlowConfig] = None) -> float:
    """Synthetic reward accrued by *boundary*: whole elapsed days since the start."""
    config = config or FlowConfig()
    if boundary <= config.reward_start:
        return 0
    elapsed_days = (boundary - config.reward_start) // config.day_ms
    return elapsed_days * config.daily_reward


def _snapshot(
    live: Dict[str, float],
    boundary: int,
    reward_addresses: Iterable[str],
    config: FlowConfig,
) -> Mapping[str, float]:
    snapshot = dict(live)
    reward = reward_for_boundary(boundary, config)
    if reward:
        for address in reward_addresses:
            snapshot[address] += reward
    return MappingProxyType(snapshot)


def compute_time_series(
    ordered_transactions: List[Transaction],
    tracked_addresses: Iterable[str],
    initial_balances: Optional[Mapping[str, float]] = None,
    config: Optional[FlowConfig] = None,
    is_reward_address: Optional[Callable[[str], bool]] = None,
) -> TimeSeries:
    """
    Compute per-day balance snapshots for the tracked addresses.

    Args:
        ordered_transactions: transaction log sorted ascending by timestamp.
        tracked_addresses:    the fixed address universe to report on.
        initial_balances:     optional starting balances; absent addresses start at 0.
        config:               constants (day width, reward schedule, ...).
        is_reward_address:    predicate picking the reward address; defaults
                              to ``config.is_reward_address``.

    Returns:
        Ordered mapping boundary timestamp -> read-only ``{address: balance}``.

    Raises:
        InvalidArgumentError: the transaction list is empty.
        UnsortedTransactionsError: timestamps decrease and ``config.assert_sorted`` is set.
    """
    if not ordered_transactions:
        raise InvalidArgumentError("compute_time_series requires at least one transaction")

    config = config or FlowConfig()
    if config.assert_sorted:
        ensure_sorted(ordered_transactions)
    is_reward_address = is_reward_address or config.is_reward_address

    tracked = list(dict.fromkeys(tracked_addresses))
    tracked_set = set(tracked)
    reward_addresses = [address for address in tracked if is_reward_address(address)]

    seeds = initial_balances or {}
    live: Dict[str, float] = {address: seeds.get(address, 0) for address in tracked}

    series: TimeSeries = {}
    boundary = ordered_transactions[0].timestamp - config.day_ms

    for tx in ordered_transactions:
        if tx.timestamp >= boundary + config.day_ms:
            series[boundary] = _snapshot(live, boundary, reward_addresses, config)
            boundary = tx.timestamp

        if tx.sender in tracked_set:
            live[tx.sender] -= tx.amount
        if tx.recipient in tracked_set:
            live[tx.recipient] += tx.amount

    series[boundary] = _snapshot(live, boundary, reward_addresses, config)

    logger.info(
        "time_series_computed",
        transactions=len(ordered_transactions),
        tracked=len(tracked),
        snapshots=len(series),
        reward_addresses=reward_addresses,
    )
    return series


def snapshot_keys(series: TimeSeries) -> List[int]:
    """Boundary timestamps ("day groups") in ascending order."""
    return list(series.keys())


def total_balance(snapshot: Mapping[str, float], exclude: Optional[Callable[[str], bool]] = None) -> float:
    """Sum of a snapshot's balances, optionally skipping addresses matched by *exclude*."""
    return sum(
        balance for address, balance in snapshot.items()
        if exclude is None or not exclude(address)
    )
