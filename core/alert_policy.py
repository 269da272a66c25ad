"""
Alert decision rules: threshold comparison and per-symbol cooldown.

Price alerts have no cooldown and re-fire every tick while the move holds.
OI alerts share one cooldown per (user, symbol) across all lookback windows.
"""
from datetime import datetime, timedelta
from typing import Optional

from core.oi_history import SymbolOIHistory

DEFAULT_COOLDOWN = timedelta(minutes=5)


def percent_change(current: float, reference: float) -> Optional[float]:
    """Signed change from reference to current in percent, None if reference is 0."""
    if reference == 0:
        return None
    return (current - reference) / reference * 100


def has_significant_change(current: float, reference: float, threshold: float) -> bool:
    """True if |change| >= threshold percent. Always False for a zero reference."""
    change = percent_change(current, reference)
    if change is None:
        return False
    return abs(change) >= threshold


def cooldown_elapsed(
    last_alert_time: Optional[datetime],
    now: datetime,
    cooldown: timedelta = DEFAULT_COOLDOWN,
) -> bool:
    """True if strictly more than `cooldown` has passed since the last alert."""
    if last_alert_time is None:
        return True
    return now - last_alert_time > cooldown


def can_alert(history: SymbolOIHistory, now: datetime, cooldown: timedelta = DEFAULT_COOLDOWN) -> bool:
    """Cooldown gate for a symbol history. Does not consume the cooldown."""
    return cooldown_elapsed(history.last_alert_time, now, cooldown)


def mark_alerted(history: SymbolOIHistory, now: datetime):
    """Start a new cooldown period for the symbol."""
    history.last_alert_time = now
