"""
Synthetic STX export generator for local development.

Writes ``transactions-<OWNER>.csv`` files in the export layout that
``services.ingestion`` reads, so the API can run against
``data/`` without real exports:

- the endowment contract pays out to each owner a few times
- owners move STX to a handful of large counterparties (tracked)
- owners scatter small amounts to many dust addresses (untracked)

Output: data/transactions-*.csv
"""

import os
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pandas as pd

from services.config import SIP_031_ADDRESS
from services.ingestion import EXPORT_COLUMNS
from services.logger import get_logger

logger = get_logger(__name__)

# --- Constants ---
NUM_OWNERS = 5
NUM_COUNTERPARTIES = 6
NUM_DUST_ADDRESSES = 40
DAYS = 30
BASE_TIME = datetime(2025, 9, 16, tzinfo=timezone.utc)

PAYOUT_MIN = 500_000
PAYOUT_MAX = 5_000_000
TRANSFER_MIN = 50_000
TRANSFER_MAX = 400_000
DUST_MIN = 11
DUST_MAX = 2_000


# ──────────────────────────────────────────────
#  Helper utilities
# ──────────────────────────────────────────────

def _address(rng: random.Random, prefix: str = "SP") -> str:
    alphabet = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
    return prefix + "".join(rng.choice(alphabet) for _ in range(38))


def _tx_id(rng: random.Random) -> str:
    return "0x" + uuid.UUID(int=rng.getrandbits(128)).hex


def _timestamp(rng: random.Random) -> datetime:
    return BASE_TIME + timedelta(
        days=rng.randint(0, DAYS - 1),
        hours=rng.randint(0, 23),
        minutes=rng.randint(0, 59),
        seconds=rng.randint(0, 59),
    )


def _row(
    rng: random.Random,
    when: datetime,
    sender: str = "",
    recipient: str = "",
    in_amount: float = 0,
    out_amount: float = 0,
) -> Dict[str, str]:
    row = {column: "" for column in EXPORT_COLUMNS}
    row.update({
        "tx_type": "token_transfer",
        "burn_date": when.strftime("%Y-%m-%dT%H:%M:%S.000Z"),
        "tx_id": _tx_id(rng),
        "status": "success",
        "fee_symbol": "STX",
        "fee_amount": "0.003",
    })
    if in_amount:
        row.update({"in_symbol": "STX", "in_amount": str(in_amount), "sender": sender})
    if out_amount:
        row.update({"out_symbol": "STX", "out_amount": str(out_amount), "recipient": recipient})
    return row


# ──────────────────────────────────────────────
#  Build & save
# ──────────────────────────────────────────────

def build_exports(seed: int = 42) -> Dict[str, pd.DataFrame]:
    """Return one export DataFrame per owner, keyed by owner address."""
    rng = random.Random(seed)
    owners = [_address(rng) for _ in range(NUM_OWNERS)]
    counterparties = [_address(rng, "SM") for _ in range(NUM_COUNTERPARTIES)]
    dust = [_address(rng) for _ in range(NUM_DUST_ADDRESSES)]

    exports: Dict[str, pd.DataFrame] = {}
    for owner in owners:
        rows: List[Dict[str, str]] = []

        for _ in range(rng.randint(2, 4)):
            amount = round(rng.uniform(PAYOUT_MIN, PAYOUT_MAX), 6)
            rows.append(_row(rng, _timestamp(rng), sender=SIP_031_ADDRESS, in_amount=amount))

        for _ in range(rng.randint(5, 10)):
            amount = round(rng.uniform(TRANSFER_MIN, TRANSFER_MAX), 6)
            rows.append(_row(rng, _timestamp(rng), recipient=rng.choice(counterparties), out_amount=amount))

        for _ in range(rng.randint(5, 15)):
            amount = round(rng.uniform(DUST_MIN, DUST_MAX), 6)
            if rng.random() < 0.5:
                rows.append(_row(rng, _timestamp(rng), sender=rng.choice(dust), in_amount=amount))
            else:
                rows.append(_row(rng, _timestamp(rng), recipient=rng.choice(dust), out_amount=amount))

        df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
        # Exports list newest first
        df.sort_values("burn_date", ascending=False, inplace=True)
        exports[owner] = df
    return exports


def save_exports(exports: Dict[str, pd.DataFrame], directory: Optional[str] = None) -> List[str]:
    """Write each export to ``<directory>/transactions-<OWNER>.csv``."""
    if directory is None:
        directory = os.path.join(os.path.dirname(__file__), "..", "data")
    directory = os.path.abspath(directory)
    os.makedirs(directory, exist_ok=True)

    paths: List[str] = []
    for owner, df in exports.items():
        path = os.path.join(directory, f"transactions-{owner}.csv")
        df.to_csv(path, index=False)
        paths.append(path)
    return paths


def main():
    exports = build_exports()
    paths = save_exports(exports)
    logger.info(
        "synthetic_exports_written",
        files=len(paths),
        rows=sum(len(df) for df in exports.values()),
        directory=os.path.dirname(paths[0]) if paths else None,
    )


if __name__ == "__main__":
    main()
