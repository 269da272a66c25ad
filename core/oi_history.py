"""
Sliding-window open interest history.

Each monitoring session keeps one SymbolOIHistory per tracked symbol. Samples
arrive roughly once per tick and are pruned to a retention window, so
"OI about N minutes ago" can be answered from point-in-time samples.

Lookups use a tolerance window instead of exact timestamps: with ~1 sample
per minute and fixed offsets (15m, 30m) an exact match almost never exists.
"""
import logging
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Optional

from core.models import OISample

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(minutes=30)
DEFAULT_TOLERANCE = timedelta(minutes=1)


class SymbolOIHistory:
    """
    OI samples for a single symbol, oldest first.

    Not thread-safe: only the owning session touches it.
    """

    def __init__(self, symbol: str):
        self.symbol = symbol
        self._samples: Deque[OISample] = deque()
        self.last_alert_time: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> list[OISample]:
        return list(self._samples)

    def record(self, timestamp: datetime, value: float) -> OISample:
        """
        Append a sample.

        Raises:
            ValueError: if timestamp is older than the newest sample
        """
        if self._samples and timestamp < self._samples[-1].timestamp:
            raise ValueError(
                f"{self.symbol}: sample at {timestamp.isoformat()} is older than "
                f"latest {self._samples[-1].timestamp.isoformat()}"
            )
        sample = OISample(timestamp=timestamp, value=value)
        self._samples.append(sample)
        return sample

    def prune(self, now: datetime, retention: timedelta = DEFAULT_RETENTION) -> int:
        """
        Drop samples with timestamp <= now - retention.

        Returns:
            Number of samples removed
        """
        cutoff = now - retention
        removed = 0
        while self._samples and self._samples[0].timestamp <= cutoff:
            self._samples.popleft()
            removed += 1
        return removed

    def value_near(
        self,
        now: datetime,
        offset: timedelta,
        tolerance: timedelta = DEFAULT_TOLERANCE,
    ) -> Optional[float]:
        """
        OI value from roughly `offset` ago.

        Picks the most recent sample in [now - offset - tolerance, now - offset].

        Returns:
            The sample value, or None if no sample falls in the window
        """
        upper = now - offset
        lower = upper - tolerance
        # Newest first so the freshest qualifying sample wins
        for sample in reversed(self._samples):
            if sample.timestamp > upper:
                continue
            if sample.timestamp < lower:
                break
            return sample.value
        return None

    def latest(self) -> Optional[OISample]:
        return self._samples[-1] if self._samples else None
