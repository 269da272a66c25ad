"""
Shared fakes for the monitoring tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Tuple

import pytest

from core.binance_client import ExchangeDataError


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeExchange:
    """In-memory exchange; raises ExchangeDataError for symbols listed in `failing`."""

    def __init__(self):
        self.symbols: List[str] = []
        self.candles: Dict[str, Tuple[float, float]] = {}
        self.open_interest: Dict[str, float] = {}
        self.prices: Dict[str, float] = {}
        self.failing: set = set()
        self.failing_prices: set = set()
        self.calls: List[tuple] = []

    def _check(self, symbol: str):
        if symbol in self.failing:
            raise ExchangeDataError(f"boom {symbol}")

    async def list_tradable_symbols(self) -> List[str]:
        self.calls.append(("symbols",))
        if "*" in self.failing:
            raise ExchangeDataError("exchange down")
        return list(self.symbols)

    async def get_two_candle_closes(self, symbol: str, time_frame: str) -> Tuple[float, float]:
        self.calls.append(("candles", symbol, time_frame))
        self._check(symbol)
        if symbol not in self.candles:
            raise ExchangeDataError(f"no klines for {symbol}")
        return self.candles[symbol]

    async def get_open_interest(self, symbol: str) -> float:
        self.calls.append(("oi", symbol))
        self._check(symbol)
        if symbol not in self.open_interest:
            raise ExchangeDataError(f"no open interest for {symbol}")
        return self.open_interest[symbol]

    async def get_current_price(self, symbol: str) -> float:
        self.calls.append(("price", symbol))
        self._check(symbol)
        if symbol in self.failing_prices:
            raise ExchangeDataError(f"no price for {symbol}")
        return self.prices.get(symbol, 1.0)


class FakeNotifier:
    """Collects messages instead of sending them."""

    def __init__(self, channels=("main",)):
        self._channels = list(channels)
        self.sent: List[Tuple[int, str, str]] = []
        self.usernames: Dict[str, str] = {}
        self.unblocked: List[Tuple[str, int]] = []

    @property
    def channels(self) -> List[str]:
        return list(self._channels)

    def has_channel(self, channel: str) -> bool:
        return channel in self._channels

    def unblock(self, channel: str, user_id: int):
        self.unblocked.append((channel, user_id))

    def bot_link(self, channel: str):
        username = self.usernames.get(channel)
        return f"https://t.me/{username}" if username else None

    async def send(self, user_id: int, channel: str, text: str) -> bool:
        self.sent.append((user_id, channel, text))
        return True

    def texts_for(self, user_id: int) -> List[str]:
        return [text for uid, _, text in self.sent if uid == user_id]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def exchange():
    return FakeExchange()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def channel_notifier():
    return FakeNotifier(channels=("main", "scalp"))
