"""
Message formatting utilities for Telegram alert notifications.
"""
from typing import List

from core.models import OIChange, PriceChange


def format_price_alert(change: PriceChange) -> str:
    """
    Format a price pump/dump into a Telegram message.

    Args:
        change: The close-to-close move that crossed the threshold

    Returns:
        Formatted message string (Markdown)
    """
    header = "🟩 Pump" if change.is_pump else "🟥 Dump"
    return (
        f"{header}: `{change.symbol}` ({change.time_frame})\n"
        f"Price change: {change.change_pct:+.2f}%\n"
        f"Current price: {change.curr_close:.4f} USDT"
    )


def format_oi_alert(symbol: str, changes: List[OIChange], price: float) -> str:
    """
    Format an open interest surge into a single Telegram message.

    One line per lookback window that triggered, shortest window first.
    """
    lines = ["🎰 OI Alert", f"`{symbol}` Binance"]
    for change in sorted(changes, key=lambda c: c.window_minutes):
        lines.append(f"OI Change ({change.window_minutes}m): {change.change_pct:+.2f}%")
    lines.append(f"Current price: {price:.5f} USDT")
    return "\n".join(lines)


def format_config_summary(config) -> str:
    """Human-readable summary of a user's monitoring settings."""
    if config.price_monitor_enabled:
        price_line = f"📊 Price: ±{config.change_threshold:g}% per {config.time_frame} candle"
    else:
        price_line = "📊 Price: off"

    if config.oi_monitor_enabled:
        oi_line = f"🔍 Open interest: ±{config.oi_threshold:g}% over 15m / 30m"
    else:
        oi_line = "🔍 Open interest: off"

    return "\n".join([price_line, oi_line, f"📨 Channel: {config.target_channel}"])
