"""
Pydantic models for OI Pump Alerts Bot data structures.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from config import MAIN_CHANNEL


class UserMonitorConfig(BaseModel):
    """Snapshot of one user's monitoring settings, taken at session start."""
    model_config = ConfigDict(frozen=True)

    user_id: int
    time_frame: str = ""  # kline interval, e.g. "5m"
    change_threshold: float = 0.0  # percent, 0 = price monitor off
    monitor_oi: bool = False
    oi_threshold: float = 0.0  # percent, 0 = OI monitor off
    target_channel: str = MAIN_CHANNEL

    @property
    def price_monitor_enabled(self) -> bool:
        return bool(self.time_frame) and self.change_threshold > 0

    @property
    def oi_monitor_enabled(self) -> bool:
        return self.monitor_oi and self.oi_threshold > 0

    @property
    def is_eligible(self) -> bool:
        """At least one sub-monitor is fully configured."""
        return self.price_monitor_enabled or self.oi_monitor_enabled


class OISample(BaseModel):
    """Open interest observed at a point in time."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    value: float


class OIChange(BaseModel):
    """An OI move over one lookback window that crossed the user's threshold."""
    window_minutes: int
    reference: float
    current: float
    change_pct: float


class PriceChange(BaseModel):
    """Close-to-close move between the two latest candles."""
    symbol: str
    time_frame: str
    prev_close: float
    curr_close: float
    change_pct: float

    @property
    def is_pump(self) -> bool:
        return self.change_pct > 0


class SessionStatus(BaseModel):
    """Supervisor view of a running session."""
    user_id: int
    config: UserMonitorConfig
    started_at: datetime
    ticks: int = 0
    alerts_sent: int = 0
    last_tick_at: Optional[datetime] = None
    tracked_symbols: int = Field(default=0, ge=0)
