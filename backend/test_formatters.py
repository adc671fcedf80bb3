#!/usr/bin/env python3
"""
Tests for display helpers.
"""

from services.config import SEPT_15_START
from utils.formatters import (
    explorer_address_url,
    format_address,
    format_amount,
    format_date,
    format_day_only,
    format_day_param,
    get_address_label,
)


def test_format_dates():
    ts = SEPT_15_START + (10 * 60 + 30) * 60 * 1000
    assert format_date(ts) == "Sep 15, 2025, 10:30 AM"
    assert format_day_only(ts) == "Sep 15, 2025"
    assert format_day_param(ts) == "2025-09-15"


def test_format_address():
    address = "SP1BJGDG8MSM64DMH33A0F1NB0DT40YGBPSW00NES"
    assert format_address(address) == "SP1BJGDG...W00NES"
    assert format_address("SHORT") == "SHORT"


def test_format_amount():
    assert format_amount(1234567.4) == "1,234,567"
    assert format_amount(0) == "0"


def test_address_labels():
    assert get_address_label("SP2VCQJGH7PHP2DJK7Z0V48AGBHQAW3R3ZW1QF4N.pool-vault") == "Zest"
    assert get_address_label("SPUNKNOWN") is None
    assert explorer_address_url("SPX") == "https://explorer.hiro.so/address/SPX?chain=mainnet"
