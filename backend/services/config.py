"""
Configuration for the STX flow pipeline.

All tunable constants live on ``FlowConfig`` so callers can override them per
call instead of patching module globals. ``load_config()`` reads overrides
from the environment (and a ``.env`` file at the project root when present):

- STX_FLOW_MIN_VOLUME_THRESHOLD: volume needed for an address to be tracked
- STX_FLOW_MIN_TRANSACTION_AMOUNT: transfers at or below this are dropped
- STX_FLOW_DAY_MS: bucket width in milliseconds
- STX_FLOW_REWARD_START: reward accrual start (ms epoch or ISO date)
- STX_FLOW_INGEST_START: ingestion cutoff (defaults to the reward start)
- STX_FLOW_DAILY_REWARD: STX credited to the reward address per elapsed day
- STX_FLOW_REWARD_ADDRESS: reward (endowment) address, contract or plain principal
- STX_FLOW_INITIAL_ENDOWMENT: reward address balance before the first transfer
- STX_FLOW_DATA_DIR / STX_FLOW_OUTPUT_DIR: CSV input and report output dirs
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dateutil import parser as date_parser
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_ENV_PATH = os.path.join(os.path.dirname(_BASE_DIR), ".env")

DAY_IN_MILLIS = 24 * 60 * 60 * 1000
MIN_STX_THRESHOLD = 100_000
MIN_TRANSACTION_AMOUNT = 10
SEPT_15_START = 1757894400000  # 2025-09-15T00:00:00Z
DAILY_REWARD = 68_400
SIP_031_ADDRESS = "SP000000000000000000002Q6VF78.sip-031"
START_ENDOWMENT = 200_000_000

_ENV_PREFIX = "STX_FLOW_"


def parse_epoch_ms(value: Any) -> int:
    """
    Coerce an epoch-millisecond value or a date string into epoch ms.

    Naive date strings are interpreted as UTC.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
        dt = date_parser.parse(text, default=datetime(1970, 1, 1))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)
    raise ValueError(f"Invalid timestamp type: {type(value)}")


class FlowConfig(BaseModel):
    """Named, overridable constants shared by ingestion, aggregation and the engine."""

    model_config = ConfigDict(frozen=True)

    min_volume_threshold: float = MIN_STX_THRESHOLD
    min_transaction_amount: float = MIN_TRANSACTION_AMOUNT
    day_ms: int = DAY_IN_MILLIS
    reward_start: int = SEPT_15_START
    ingest_start: Optional[int] = None
    daily_reward: float = DAILY_REWARD
    reward_address: str = SIP_031_ADDRESS
    initial_endowment: float = START_ENDOWMENT
    assert_sorted: bool = True
    data_dir: str = os.path.join(_BASE_DIR, "data")
    output_dir: str = os.path.join(_BASE_DIR, "output")

    @field_validator("reward_start", "ingest_start", mode="before")
    @classmethod
    def validate_timestamp(cls, v):
        if v is None:
            return v
        return parse_epoch_ms(v)

    @field_validator("day_ms")
    @classmethod
    def validate_day_ms(cls, v):
        if v <= 0:
            raise ValueError("day_ms must be positive")
        return v

    @property
    def effective_ingest_start(self) -> int:
        return self.reward_start if self.ingest_start is None else self.ingest_start

    def is_reward_address(self, address: str) -> bool:
        """
        True for the reward address.

        A contract principal matches on its ``SP000`` prefix plus the
        ``.sip-031`` contract name so that shortened fixtures (e.g.
        ``SP000.sip-031``) qualify too. A plain principal must match exactly.
        """
        if "." not in self.reward_address:
            return address == self.reward_address
        principal, contract = self.reward_address.split(".", 1)
        return address.startswith(principal[:5]) and f".{contract}" in address


# ---------------------------------------------------------------------------
# Environment loading
# ---------------------------------------------------------------------------

def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for name in FlowConfig.model_fields:
        raw = os.getenv(_ENV_PREFIX + name.upper())
        if raw is None or raw.strip() == "":
            continue
        raw = raw.strip()
        if name == "assert_sorted":
            overrides[name] = raw.lower() in ("1", "true", "yes")
        else:
            overrides[name] = raw
    return overrides


def load_config(**overrides: Any) -> FlowConfig:
    """
    Build a ``FlowConfig`` from defaults, the environment and explicit overrides.

    Explicit keyword overrides win over environment variables.
    """
    load_dotenv(_ENV_PATH)
    values = _env_overrides()
    values.update(overrides)
    return FlowConfig(**values)
