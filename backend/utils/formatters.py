"""
Display helpers for dates, addresses and amounts.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

# Known contract addresses and their human-readable labels
ADDRESS_LABELS: Dict[str, str] = {
    "SP2VCQJGH7PHP2DJK7Z0V48AGBHQAW3R3ZW1QF4N.pool-vault": "Zest",
    "SP3YBY0BH4ANC0Q35QB6PD163F943FVFVDFM1SH7S.gl-core": "Velar PerpDex",
    "SP000000000000000000002Q6VF78.sip-031": "SIP-031 Endowment",
}

EXPLORER_ADDRESS_URL = "https://explorer.hiro.so/address/{address}?chain=mainnet"


def _to_datetime(timestamp: int) -> datetime:
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)


def format_date(timestamp: int) -> str:
    """Epoch ms -> ``Sep 15, 2025, 10:30 AM`` (UTC)."""
    dt = _to_datetime(timestamp)
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}, {dt.strftime('%I:%M %p')}"


def format_day_only(timestamp: int) -> str:
    """Epoch ms -> ``Sep 15, 2025`` (UTC)."""
    dt = _to_datetime(timestamp)
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}"


def format_day_param(timestamp: int) -> str:
    """Epoch ms -> ``2025-09-15``, the form accepted by the nearest-day lookup."""
    return _to_datetime(timestamp).strftime("%Y-%m-%d")


def format_address(address: str, start_chars: int = 8, end_chars: int = 6) -> str:
    """Truncate an address for display, e.g. ``SP123456...ABC123``."""
    if len(address) <= start_chars + end_chars:
        return address
    return f"{address[:start_chars]}...{address[len(address) - end_chars:]}"


def format_amount(amount: float) -> str:
    """Whole number with thousands separators, e.g. ``1,234,567``."""
    return f"{amount:,.0f}"


def get_address_label(address: str) -> Optional[str]:
    return ADDRESS_LABELS.get(address)


def explorer_address_url(address: str) -> str:
    return EXPLORER_ADDRESS_URL.format(address=address)
