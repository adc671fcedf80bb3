"""
Network aggregation over the full transaction log.

Builds the static address universe shown by the graph: one node per
address whose total volume reaches the tracking threshold, and one directed
link per (source, target) pair where both ends are tracked. Everything
below the threshold is "untracked" and only appears in aggregate.
"""

from typing import Any, Dict, Iterable, List, Optional, Set

import networkx as nx
from pydantic import BaseModel, ConfigDict

from services.config import FlowConfig
from services.ingestion import Transaction
from services.logger import get_logger

logger = get_logger(__name__)


class NetworkNode(BaseModel):
    """A tracked address with its lifetime totals."""

    model_config = ConfigDict(frozen=True)

    id: str
    balance: float
    sent: float
    received: float


class NetworkLink(BaseModel):
    """Summed transfers from one tracked address to another."""

    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    value: float


class NetworkData(BaseModel):
    nodes: List[NetworkNode] = []
    links: List[NetworkLink] = []

    @property
    def tracked_addresses(self) -> Set[str]:
        return {node.id for node in self.nodes}


# ---------------------------------------------------------------------------
# Graph construction
# ---------------------------------------------------------------------------

def build_transfer_graph(transactions: Iterable[Transaction]) -> nx.DiGraph:
    """
    Aggregate transactions into a weighted DiGraph.

    Node attributes ``sent`` / ``received`` hold per-address totals and the
    edge attribute ``value`` holds the summed amount for each ordered pair.
    A self-transfer contributes to both totals and to a self-loop edge.
    """
    G = nx.DiGraph()

    for tx in transactions:
        for address in (tx.sender, tx.recipient):
            if address not in G:
                G.add_node(address, sent=0.0, received=0.0)
        G.nodes[tx.sender]["sent"] += tx.amount
        G.nodes[tx.recipient]["received"] += tx.amount

        if G.has_edge(tx.sender, tx.recipient):
            G[tx.sender][tx.recipient]["value"] += tx.amount
        else:
            G.add_edge(tx.sender, tx.recipient, value=tx.amount)

    return G


def tracked_address_set(G: nx.DiGraph, config: Optional[FlowConfig] = None) -> Set[str]:
    """Addresses whose ``sent + received`` reaches the volume threshold."""
    config = config or FlowConfig()
    return {
        address for address, data in G.nodes(data=True)
        if data["sent"] + data["received"] >= config.min_volume_threshold
    }


def calculate_network_data(
    transactions: List[Transaction],
    config: Optional[FlowConfig] = None,
) -> NetworkData:
    """
    Compute tracked nodes and the links between them.

    Links touching an untracked address are dropped, not redirected.
    Empty input yields empty output.
    """
    G = build_transfer_graph(transactions)
    tracked = tracked_address_set(G, config)

    nodes = [
        NetworkNode(
            id=address,
            balance=data["received"] - data["sent"],
            sent=data["sent"],
            received=data["received"],
        )
        for address, data in G.nodes(data=True)
        if address in tracked
    ]

    tracked_graph = G.subgraph(tracked)
    links = [
        NetworkLink(source=u, target=v, value=data["value"])
        for u, v, data in tracked_graph.edges(data=True)
    ]

    logger.info(
        "network_aggregated",
        addresses=G.number_of_nodes(),
        tracked=len(nodes),
        links=len(links),
    )
    return NetworkData(nodes=nodes, links=links)


# ---------------------------------------------------------------------------
# Conservation helpers
# ---------------------------------------------------------------------------

def address_totals(transactions: Iterable[Transaction]) -> Dict[str, Dict[str, float]]:
    """Per-address ``{"sent", "received"}`` over every address, tracked or not."""
    G = build_transfer_graph(transactions)
    return {
        address: {"sent": data["sent"], "received": data["received"]}
        for address, data in G.nodes(data=True)
    }


def untracked_flows(
    transactions: Iterable[Transaction],
    tracked: Set[str],
) -> Dict[str, float]:
    """
    Volume crossing the tracked/untracked boundary.

    ``sent_to_untracked``: tracked sender, untracked recipient.
    ``received_from_untracked``: untracked sender, tracked recipient.
    ``internal_untracked``: both ends untracked.
    """
    flows = {
        "sent_to_untracked": 0.0,
        "received_from_untracked": 0.0,
        "internal_untracked": 0.0,
    }
    for tx in transactions:
        sender_tracked = tx.sender in tracked
        recipient_tracked = tx.recipient in tracked
        if sender_tracked and not recipient_tracked:
            flows["sent_to_untracked"] += tx.amount
        elif recipient_tracked and not sender_tracked:
            flows["received_from_untracked"] += tx.amount
        elif not sender_tracked and not recipient_tracked:
            flows["internal_untracked"] += tx.amount
    return flows


def graph_to_json(network_data: NetworkData) -> Dict[str, Any]:
    """
    Convert network data to the ``{"nodes", "links"}`` shape the renderer uses.

    Nodes are ordered by id and links by (source, target) for deterministic output.
    """
    nodes = [node.model_dump() for node in sorted(network_data.nodes, key=lambda n: n.id)]
    links = [
        link.model_dump()
        for link in sorted(network_data.links, key=lambda l: (l.source, l.target))
    ]
    return {"nodes": nodes, "links": links}
