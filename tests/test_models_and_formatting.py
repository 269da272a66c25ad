"""Tests for config eligibility, input parsing and alert texts."""
import pytest
from pydantic import ValidationError

from core.models import OIChange, PriceChange, UserMonitorConfig
from utils.filters import normalize_timeframe, parse_threshold
from utils.formatting import format_config_summary, format_oi_alert, format_price_alert


@pytest.mark.parametrize("kwargs,price,oi", [
    ({"time_frame": "5m", "change_threshold": 3}, True, False),
    ({"time_frame": "", "change_threshold": 3}, False, False),
    ({"time_frame": "5m", "change_threshold": 0}, False, False),
    ({"monitor_oi": True, "oi_threshold": 5}, False, True),
    ({"monitor_oi": False, "oi_threshold": 5}, False, False),
    ({"monitor_oi": True, "oi_threshold": 0}, False, False),
    ({"time_frame": "1h", "change_threshold": 2, "monitor_oi": True, "oi_threshold": 5}, True, True),
])
def test_config_sub_monitors(kwargs, price, oi):
    config = UserMonitorConfig(user_id=1, **kwargs)

    assert config.price_monitor_enabled is price
    assert config.oi_monitor_enabled is oi
    assert config.is_eligible is (price or oi)


def test_config_is_immutable():
    config = UserMonitorConfig(user_id=1)

    with pytest.raises(ValidationError):
        config.oi_threshold = 5
    assert config.target_channel == "main"


@pytest.mark.parametrize("value,expected", [
    ("5m", "5m"), ("5M", "5m"), (" 1h ", "1h"), ("1M", "1M"), ("1w", "1w"), ("7m", None), ("", None),
])
def test_normalize_timeframe(value, expected):
    assert normalize_timeframe(value) == expected


@pytest.mark.parametrize("value,expected", [
    ("3", 3.0), ("2.5", 2.5), ("5%", 5.0), ("1,5", 1.5),
    ("0", None), ("-2", None), ("abc", None), ("nan", None), ("inf", None), ("5000", None),
])
def test_parse_threshold(value, expected):
    assert parse_threshold(value) == expected


def test_format_price_alert():
    pump = PriceChange(symbol="BTCUSDT", time_frame="5m", prev_close=100, curr_close=104, change_pct=4.0)
    dump = PriceChange(symbol="ETHUSDT", time_frame="5m", prev_close=100, curr_close=95, change_pct=-5.0)

    assert format_price_alert(pump).startswith("🟩 Pump: `BTCUSDT`")
    assert "+4.00%" in format_price_alert(pump)
    assert "104.0000 USDT" in format_price_alert(pump)
    assert format_price_alert(dump).startswith("🟥 Dump: `ETHUSDT`")


def test_format_oi_alert_orders_windows():
    changes = [
        OIChange(window_minutes=30, reference=800, current=1100, change_pct=37.5),
        OIChange(window_minutes=15, reference=1000, current=1100, change_pct=10.0),
    ]

    lines = format_oi_alert("SOLUSDT", changes, 150.25).splitlines()

    assert lines == [
        "🎰 OI Alert",
        "`SOLUSDT` Binance",
        "OI Change (15m): +10.00%",
        "OI Change (30m): +37.50%",
        "Current price: 150.25000 USDT",
    ]


def test_format_config_summary():
    config = UserMonitorConfig(user_id=1, time_frame="15m", change_threshold=2.5, target_channel="scalp")

    summary = format_config_summary(config)

    assert "±2.5% per 15m candle" in summary
    assert "Open interest: off" in summary
    assert "Channel: scalp" in summary
