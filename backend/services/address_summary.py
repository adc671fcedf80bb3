"""
Address table and headline totals.

Tracked addresses get one row each; everything below the tracking threshold
is folded into a single low-volume row sized so that sent equals received
and minted supply equals final balances across the whole table.
"""

from typing import Any, Dict, List, Optional, Sequence

from services.config import FlowConfig
from services.day_index import balances_at_time
from services.ingestion import Transaction
from services.network import NetworkData
from services.time_series import TimeSeries, total_balance

LOW_VOLUME_ID = "low-volume"


def total_daily_rewards(last_timestamp: int, config: Optional[FlowConfig] = None) -> float:
    """Rewards minted between the reward start and *last_timestamp*, never negative."""
    config = config or FlowConfig()
    days = (last_timestamp - config.reward_start) // config.day_ms
    return max(days, 0) * config.daily_reward


def minted_for_address(
    address: str,
    last_timestamp: int,
    config: Optional[FlowConfig] = None,
) -> float:
    config = config or FlowConfig()
    if not config.is_reward_address(address):
        return 0
    return config.initial_endowment + total_daily_rewards(last_timestamp, config)


def total_minted(transactions: Sequence[Transaction], config: Optional[FlowConfig] = None) -> float:
    config = config or FlowConfig()
    if not transactions:
        return config.initial_endowment
    return config.initial_endowment + total_daily_rewards(transactions[-1].timestamp, config)


def build_address_rows(
    network_data: NetworkData,
    transactions: Sequence[Transaction],
    config: Optional[FlowConfig] = None,
) -> List[Dict[str, Any]]:
    """One row per tracked node with ``minted`` and ``final_balance`` added."""
    config = config or FlowConfig()
    last_timestamp = transactions[-1].timestamp if transactions else config.reward_start

    rows: List[Dict[str, Any]] = []
    for node in network_data.nodes:
        minted = minted_for_address(node.id, last_timestamp, config)
        rows.append({
            "id": node.id,
            "sent": node.sent,
            "received": node.received,
            "balance": node.balance,
            "minted": minted,
            "final_balance": minted + node.received - node.sent,
        })
    return rows


def low_volume_row(rows: Sequence[Dict[str, Any]], minted_supply: float) -> Dict[str, Any]:
    """
    Residual row standing in for every untracked address.

    A positive ``sent - received`` gap among tracked rows means untracked
    addresses received the difference; a negative gap means they sent it.
    """
    sent = sum(r["sent"] for r in rows)
    received = sum(r["received"] for r in rows)
    net = sent - received
    return {
        "id": LOW_VOLUME_ID,
        "sent": -net if net < 0 else 0,
        "received": net if net > 0 else 0,
        "minted": minted_supply - sum(r["minted"] for r in rows),
        "final_balance": minted_supply - sum(r["final_balance"] for r in rows),
    }


def grand_totals(rows: Sequence[Dict[str, Any]], low_volume: Dict[str, Any]) -> Dict[str, float]:
    totals = {"minted": 0.0, "received": 0.0, "sent": 0.0, "final_balance": 0.0}
    for row in list(rows) + [low_volume]:
        for key in totals:
            totals[key] += row[key]
    return totals


def build_address_summary(
    network_data: NetworkData,
    transactions: Sequence[Transaction],
    config: Optional[FlowConfig] = None,
) -> Dict[str, Any]:
    """Rows sorted by final balance (largest first), low-volume row and grand totals."""
    config = config or FlowConfig()
    rows = build_address_rows(network_data, transactions, config)
    rows.sort(key=lambda r: (-r["final_balance"], r["id"]))
    minted_supply = total_minted(transactions, config)
    low_volume = low_volume_row(rows, minted_supply)
    return {
        "rows": rows,
        "low_volume": low_volume,
        "totals": grand_totals(rows, low_volume),
        "daily_rewards_minted": minted_supply - config.initial_endowment,
    }


def circulating_total(
    series: TimeSeries,
    day_boundaries: Sequence[int],
    t: float,
    config: Optional[FlowConfig] = None,
) -> float:
    """Tracked balances at *t*, excluding the reward address."""
    config = config or FlowConfig()
    snapshot = balances_at_time(series, day_boundaries, t)
    return total_balance(snapshot, exclude=config.is_reward_address)
