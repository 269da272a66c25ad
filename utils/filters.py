"""
Input validation for user-supplied monitoring settings.
"""
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Kline intervals accepted by Binance futures
VALID_TIMEFRAMES = (
    "1m", "3m", "5m", "15m", "30m",
    "1h", "2h", "4h", "6h", "8h", "12h",
    "1d", "3d", "1w", "1M",
)

MAX_THRESHOLD = 1000.0


def normalize_timeframe(value: str) -> Optional[str]:
    """
    Validate a kline interval token.

    "1M" (month) is case-sensitive; everything else is matched lowercase.

    Returns:
        The canonical token, or None if unsupported
    """
    value = value.strip()
    if value == "1M":
        return value
    value = value.lower()
    return value if value in VALID_TIMEFRAMES else None


def parse_threshold(value: str) -> Optional[float]:
    """
    Parse a percent threshold such as "3", "2.5" or "5%".

    Returns:
        Positive float, or None if invalid
    """
    text = value.strip().rstrip("%").replace(",", ".")
    try:
        threshold = float(text)
    except ValueError:
        return None

    if threshold <= 0 or threshold > MAX_THRESHOLD or threshold != threshold:
        return None
    return threshold
