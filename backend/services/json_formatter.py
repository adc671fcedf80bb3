"""
JSON Report Formatter for the STX flow pipeline.

Generates a deterministic JSON report from the pipeline output: network
nodes and links, the day-bucketed time series, the ordered transaction list
and the address summary. The presentation layer consumes this document
as-is.
"""

import json
import os
from typing import Any, Dict, List, Optional, Sequence

from services.address_summary import circulating_total
from services.config import FlowConfig
from services.ingestion import Transaction
from services.network import NetworkData, graph_to_json
from services.time_series import TimeSeries
from utils.formatters import explorer_address_url, get_address_label

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_OUTPUT_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "output")
_REPORT_FILENAME = "latest_report.json"


# ---------------------------------------------------------------------------
# Public formatting functions
# ---------------------------------------------------------------------------

def format_time_series(series: TimeSeries, config: Optional[FlowConfig] = None) -> List[Dict[str, Any]]:
    """
    Flatten the time series into ``[{"timestamp", "balances", "circulating"}]``.

    JSON object keys must be strings, so the ordered map becomes a list; the
    per-snapshot balances are sorted by address. ``circulating`` is the tracked
    total without the reward address, as shown in the stats panel.
    """
    day_groups = list(series.keys())
    return [
        {
            "timestamp": boundary,
            "balances": {address: snapshot[address] for address in sorted(snapshot)},
            "circulating": circulating_total(series, day_groups, boundary, config),
        }
        for boundary, snapshot in series.items()
    ]


def format_nodes(nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Attach the display label and explorer link to each node."""
    return [
        {
            **node,
            "label": get_address_label(node["id"]),
            "explorer_url": explorer_address_url(node["id"]),
        }
        for node in nodes
    ]


def format_transactions(transactions: Sequence[Transaction]) -> List[Dict[str, Any]]:
    """Transactions in log order (oldest first)."""
    return [tx.model_dump() for tx in transactions]


def build_final_json(
    transactions: Sequence[Transaction],
    network_data: NetworkData,
    series: TimeSeries,
    address_summary: Dict[str, Any],
    processing_time_seconds: float,
    output_dir: Optional[str] = None,
    config: Optional[FlowConfig] = None,
) -> Dict[str, Any]:
    """
    Assemble the complete flow report.

    Args:
        transactions:            the ordered transaction log.
        network_data:            tracked nodes and links.
        series:                  boundary -> balances snapshot map.
        address_summary:         output of ``build_address_summary``.
        processing_time_seconds: elapsed wall-clock time for the pipeline.
        output_dir:              where to persist the report (defaults to ``output/``).
        config:                  pipeline constants (reward address for ``circulating``).

    Returns the full report dict. The report is also persisted to
    ``<output_dir>/latest_report.json``.
    """
    graph = graph_to_json(network_data)
    day_groups = list(series.keys())

    all_addresses: set[str] = set()
    for tx in transactions:
        all_addresses.add(tx.sender)
        all_addresses.add(tx.recipient)

    report: Dict[str, Any] = {
        "summary": {
            "total_addresses": len(all_addresses),
            "tracked_addresses": len(graph["nodes"]),
            "total_links": len(graph["links"]),
            "total_transactions": len(transactions),
            "total_days": len(day_groups),
            "first_day": day_groups[0] if day_groups else None,
            "last_day": day_groups[-1] if day_groups else None,
            "processing_time_seconds": round(processing_time_seconds, 4),
        },
        "nodes": format_nodes(graph["nodes"]),
        "links": graph["links"],
        "day_groups": day_groups,
        "time_series": format_time_series(series, config),
        "transactions": format_transactions(transactions),
        "addresses": address_summary,
    }

    save_report(report, output_dir)

    return report


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def report_path(output_dir: Optional[str] = None) -> str:
    return os.path.join(output_dir or _OUTPUT_DIR, _REPORT_FILENAME)


def save_report(report: Dict[str, Any], output_dir: Optional[str] = None) -> str:
    """
    Write the report dict to ``<output_dir>/latest_report.json``.

    Returns the absolute path of the written file.
    """
    path = os.path.abspath(report_path(output_dir))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)
    return path


def load_report(output_dir: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Read the last persisted report, or None when none exists yet."""
    path = report_path(output_dir)
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
