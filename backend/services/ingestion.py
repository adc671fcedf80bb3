"""
Transaction ingestion for STX transfer exports.

Each export is the CSV transaction history of one *owner* address, named
``transactions-<OWNER>.csv``. A row may carry an incoming leg, an outgoing
leg, or both; each STX leg becomes one ``Transaction``. The combined list is
filtered and sorted here so that downstream stages can rely on (and assert)
chronological order.
"""

import glob
import io
import os
from datetime import datetime, timezone
from typing import Iterable, List, Literal, Optional, Sequence, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

from services.config import FlowConfig, parse_epoch_ms
from services.errors import CSVFormatError, UnsortedTransactionsError
from services.logger import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Export column positions
# ---------------------------------------------------------------------------

_COL_BURN_DATE = 1
_COL_IN_SYMBOL = 2
_COL_IN_AMOUNT = 3
_COL_OUT_SYMBOL = 4
_COL_OUT_AMOUNT = 5
_COL_TX_ID = 12
_COL_SENDER = 16
_COL_RECIPIENT = 17

EXPORT_COLUMNS = [
    "tx_type", "burn_date", "in_symbol", "in_amount", "out_symbol",
    "out_amount", "fee_symbol", "fee_amount", "block_height", "block_time",
    "status", "nonce", "tx_id", "contract_id", "function_name", "memo",
    "sender", "recipient",
]

_STX_SYMBOL = "STX"
_FILE_PREFIX = "transactions-"
_FILE_SUFFIX = ".csv"


class Transaction(BaseModel):
    """One STX value transfer, normalised from an export row."""

    model_config = ConfigDict(frozen=True)

    sender: str = Field(..., description="Sending address")
    recipient: str = Field(..., description="Receiving address")
    amount: float = Field(..., ge=0, description="Amount in STX")
    timestamp: int = Field(..., description="Milliseconds since epoch")
    tx_id: str = Field("", description="Ledger event id, shared by both legs of a row")
    type: Literal["send", "receive"] = "send"
    owner_address: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v):
        """Convert amount to float and reject negatives."""
        try:
            amount = float(v)
        except (ValueError, TypeError):
            raise ValueError(f"Invalid amount format: {v}")
        if amount < 0:
            raise ValueError("Amount must not be negative")
        return amount

    @field_validator("timestamp", mode="before")
    @classmethod
    def validate_timestamp(cls, v):
        """Accept epoch ms, datetimes and date strings."""
        if isinstance(v, datetime):
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            return int(v.timestamp() * 1000)
        try:
            return parse_epoch_ms(v)
        except (ValueError, OverflowError):
            raise ValueError(f"Invalid timestamp format: {v}")

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def owner_from_filename(name: str) -> str:
    """``transactions-SP123.csv`` -> ``SP123``."""
    base = os.path.basename(name)
    return base.replace(_FILE_PREFIX, "").replace(_FILE_SUFFIX, "")


def should_include_transaction(amount: float, config: Optional[FlowConfig] = None) -> bool:
    """Drop dust transfers at or below the minimum amount."""
    config = config or FlowConfig()
    return amount > config.min_transaction_amount


def _field(row: Sequence[str], idx: int) -> str:
    if idx >= len(row):
        return ""
    value = row[idx]
    return value.strip() if isinstance(value, str) else ""


def _amount(raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        return 0.0


def _read_rows(name: str, content: str) -> List[Tuple[str, ...]]:
    if not content.strip():
        return []
    try:
        df = pd.read_csv(
            io.StringIO(content),
            header=0,
            index_col=False,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return []
    except pd.errors.ParserError as e:
        raise CSVFormatError(name, f"CSV parsing error: {e}")
    df = df.fillna("")
    return list(df.itertuples(index=False, name=None))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_export(name: str, content: str) -> List[Transaction]:
    """
    Parse one owner export into unfiltered, unsorted transactions.

    Incoming STX with a sender becomes ``sender -> owner`` (type ``receive``);
    outgoing STX with a recipient becomes ``owner -> recipient`` (type ``send``).
    Rows whose burn date cannot be parsed are skipped.
    """
    owner = owner_from_filename(name)
    transactions: List[Transaction] = []
    skipped = 0

    for row in _read_rows(name, content):
        burn_date = _field(row, _COL_BURN_DATE)
        try:
            timestamp = parse_epoch_ms(burn_date)
        except (ValueError, OverflowError):
            skipped += 1
            continue

        tx_id = _field(row, _COL_TX_ID)
        in_amount = _amount(_field(row, _COL_IN_AMOUNT))
        out_amount = _amount(_field(row, _COL_OUT_AMOUNT))
        sender = _field(row, _COL_SENDER)
        recipient = _field(row, _COL_RECIPIENT)

        if _field(row, _COL_IN_SYMBOL) == _STX_SYMBOL and in_amount > 0 and sender:
            transactions.append(Transaction(
                sender=sender,
                recipient=owner,
                amount=in_amount,
                timestamp=timestamp,
                tx_id=tx_id,
                type="receive",
                owner_address=owner,
            ))

        if _field(row, _COL_OUT_SYMBOL) == _STX_SYMBOL and out_amount > 0 and recipient:
            transactions.append(Transaction(
                sender=owner,
                recipient=recipient,
                amount=out_amount,
                timestamp=timestamp,
                tx_id=tx_id,
                type="send",
                owner_address=owner,
            ))

    if skipped:
        logger.warning("export_rows_skipped", filename=name, skipped=skipped)
    logger.debug("export_parsed", filename=name, owner=owner, legs=len(transactions))
    return transactions


def parse_transaction_data(
    csv_files: Iterable[Tuple[str, str]],
    config: Optional[FlowConfig] = None,
) -> List[Transaction]:
    """
    Parse all exports and return the filtered transaction log, oldest first.

    Keeps transactions strictly after the ingestion cutoff whose amount passes
    ``should_include_transaction``. The sort is stable, so legs sharing a
    timestamp keep their export order.
    """
    all_transactions: List[Transaction] = []
    for name, content in csv_files:
        all_transactions.extend(parse_export(name, content))
    return filter_transactions(all_transactions, config)


def filter_transactions(
    all_transactions: Sequence[Transaction],
    config: Optional[FlowConfig] = None,
) -> List[Transaction]:
    """Apply the ingestion cutoff and dust filter to parsed legs, oldest first."""
    config = config or FlowConfig()
    cutoff = config.effective_ingest_start

    kept = [
        tx for tx in all_transactions
        if tx.timestamp > cutoff and should_include_transaction(tx.amount, config)
    ]
    kept.sort(key=lambda tx: tx.timestamp)

    logger.info(
        "transactions_ingested",
        parsed=len(all_transactions),
        kept=len(kept),
        dropped=len(all_transactions) - len(kept),
    )
    return kept


def load_csv_directory(path: str) -> List[Tuple[str, str]]:
    """Read every ``transactions-*.csv`` in *path*, ordered by filename."""
    pattern = os.path.join(path, f"{_FILE_PREFIX}*{_FILE_SUFFIX}")
    files: List[Tuple[str, str]] = []
    for file_path in sorted(glob.glob(pattern)):
        with open(file_path, "r", encoding="utf-8") as f:
            files.append((os.path.basename(file_path), f.read()))
    return files


def ensure_sorted(transactions: Sequence[Transaction]) -> None:
    """Raise ``UnsortedTransactionsError`` if any timestamp decreases."""
    for i in range(1, len(transactions)):
        previous = transactions[i - 1].timestamp
        current = transactions[i].timestamp
        if current < previous:
            raise UnsortedTransactionsError(i, previous, current)
