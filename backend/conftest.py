"""
Shared pytest fixtures: transaction builders, an isolated config and an API client.
"""

import pytest

from services.config import DAY_IN_MILLIS, FlowConfig
from services.ingestion import EXPORT_COLUMNS, Transaction

T1 = 1757894400001  # one millisecond after the reward start


def make_tx(sender: str, recipient: str, amount: float, timestamp: int, tx_id: str = "") -> Transaction:
    return Transaction(
        sender=sender,
        recipient=recipient,
        amount=amount,
        timestamp=timestamp,
        tx_id=tx_id or f"tx-{sender}-{recipient}-{timestamp}",
    )


def export_csv(rows: list) -> str:
    """
    Render export rows as CSV text.

    Each row is a dict keyed by ``EXPORT_COLUMNS`` names; missing columns are blank.
    """
    lines = [",".join(EXPORT_COLUMNS)]
    for row in rows:
        lines.append(",".join(str(row.get(column, "")) for column in EXPORT_COLUMNS))
    return "\n".join(lines) + "\n"


@pytest.fixture
def parsed_transactions():
    """A->B and B->contract on day one, A->contract a day later."""
    return [
        make_tx("A", "B", 100_000_000, T1, "tx1"),
        make_tx("B", "SP000.sip-031", 50_000_000, T1, "tx2"),
        make_tx("A", "SP000.sip-031", 30_000_000, T1 + DAY_IN_MILLIS + 2, "tx3"),
    ]


@pytest.fixture
def flow_config(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return FlowConfig(data_dir=str(data_dir), output_dir=str(tmp_path / "output"))


@pytest.fixture
def client(flow_config):
    """FastAPI TestClient wired to a temporary data/output directory."""
    from fastapi.testclient import TestClient

    from main import app, get_config

    app.dependency_overrides[get_config] = lambda: flow_config
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
