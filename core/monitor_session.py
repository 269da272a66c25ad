"""
Per-user monitoring session.

A session is one asyncio task that wakes up every interval and runs two
checks over the symbol universe, one after the other:

- price: close-to-close move of the last two candles for the user's timeframe
- open interest: current OI against the values ~15m and ~30m ago

Fetch failures only skip the affected symbol for the current tick; the
session keeps running until it is cancelled.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from core.alert_policy import (
    DEFAULT_COOLDOWN, can_alert, has_significant_change, mark_alerted, percent_change
)
from core.binance_client import BinanceFuturesClient, ExchangeDataError
from core.models import OIChange, PriceChange, SessionStatus, UserMonitorConfig
from core.oi_history import DEFAULT_RETENTION, DEFAULT_TOLERANCE, SymbolOIHistory
from utils.formatting import format_oi_alert, format_price_alert

logger = logging.getLogger(__name__)

# Lookback windows for OI comparisons, in minutes
OI_WINDOWS = (15, 30)


def utc_now() -> datetime:
    """Aware UTC time; never jumps back on DST changes like local time does."""
    return datetime.now(timezone.utc)


class MonitorSession:
    """Monitoring loop and OI history for a single user."""

    def __init__(
        self,
        config: UserMonitorConfig,
        symbols: List[str],
        exchange: BinanceFuturesClient,
        notifier,
        interval: float = 60,
        retention: timedelta = DEFAULT_RETENTION,
        tolerance: timedelta = DEFAULT_TOLERANCE,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config
        self.symbols = list(symbols)
        self.exchange = exchange
        self.notifier = notifier
        self.interval = interval
        self.retention = retention
        self.tolerance = tolerance
        self.cooldown = cooldown
        self._clock = clock

        # symbol -> history, created lazily
        self.histories: Dict[str, SymbolOIHistory] = {}

        self.started_at = clock()
        self.ticks = 0
        self.alerts_sent = 0
        self.last_tick_at: Optional[datetime] = None

    @property
    def user_id(self) -> int:
        return self.config.user_id

    def _log_prefix(self) -> str:
        return f"[User {self.user_id}]"

    def history(self, symbol: str) -> SymbolOIHistory:
        """OI history for a symbol, created on first use."""
        tracking = self.histories.get(symbol)
        if tracking is None:
            tracking = SymbolOIHistory(symbol)
            self.histories[symbol] = tracking
        return tracking

    def status(self) -> SessionStatus:
        return SessionStatus(
            user_id=self.user_id,
            config=self.config,
            started_at=self.started_at,
            ticks=self.ticks,
            alerts_sent=self.alerts_sent,
            last_tick_at=self.last_tick_at,
            tracked_symbols=len(self.histories),
        )

    async def run(self):
        """Seed OI history, then tick every interval until cancelled."""
        logger.info(
            f"{self._log_prefix()} Monitoring started for {len(self.symbols)} symbols "
            f"(price={self.config.price_monitor_enabled}, oi={self.config.oi_monitor_enabled})"
        )
        if not self.config.is_eligible:
            logger.warning(f"{self._log_prefix()} No monitor configured, session will idle")

        try:
            if self.config.oi_monitor_enabled:
                try:
                    await self.seed()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"{self._log_prefix()} Unexpected error while seeding OI: {e}", exc_info=True)

            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.tick()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"{self._log_prefix()} Unexpected error during tick: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info(f"{self._log_prefix()} Monitoring stopped")
            raise

    async def seed(self) -> int:
        """
        Record one OI sample per symbol before the first tick.

        Symbols that fail are skipped; the next tick records them anyway.

        Returns:
            Number of symbols seeded
        """
        seeded = 0
        for symbol in self.symbols:
            try:
                current_oi = await self.exchange.get_open_interest(symbol)
            except ExchangeDataError as e:
                logger.warning(f"{self._log_prefix()} Failed to seed OI for {symbol}: {e}")
                continue
            self.history(symbol).record(self._clock(), current_oi)
            seeded += 1

        logger.info(f"{self._log_prefix()} Seeded OI for {seeded}/{len(self.symbols)} symbols")
        return seeded

    async def tick(self):
        """Run one check cycle: price branch first, then OI branch."""
        self.ticks += 1
        self.last_tick_at = self._clock()

        if self.config.price_monitor_enabled:
            await self.check_price_changes()

        if self.config.oi_monitor_enabled:
            await self.check_oi_changes()

    async def check_price_changes(self) -> int:
        """Price branch over all symbols. Returns number of alerts sent."""
        alerts = 0
        for symbol in self.symbols:
            try:
                if await self.check_symbol_price(symbol):
                    alerts += 1
            except ExchangeDataError as e:
                logger.warning(f"{self._log_prefix()} Failed to get price change for {symbol}: {e}")
        return alerts

    async def check_symbol_price(self, symbol: str) -> bool:
        """Alert if the last candle moved at least change_threshold percent."""
        prev_close, curr_close = await self.exchange.get_two_candle_closes(symbol, self.config.time_frame)

        change_pct = percent_change(curr_close, prev_close)
        if change_pct is None:
            logger.debug(f"{self._log_prefix()} {symbol} previous close is 0, skipping")
            return False
        if abs(change_pct) < self.config.change_threshold:
            return False

        change = PriceChange(
            symbol=symbol,
            time_frame=self.config.time_frame,
            prev_close=prev_close,
            curr_close=curr_close,
            change_pct=change_pct,
        )
        logger.info(f"{self._log_prefix()} Price trigger for {symbol}: {change_pct:+.2f}%")
        await self._deliver(format_price_alert(change))
        return True

    async def check_oi_changes(self) -> int:
        """OI branch over all symbols. Returns number of alerts sent."""
        alerts = 0
        for symbol in self.symbols:
            try:
                if await self.check_symbol_oi(symbol):
                    alerts += 1
            except ExchangeDataError as e:
                logger.warning(f"{self._log_prefix()} Failed to check OI for {symbol}: {e}")
            except ValueError as e:
                # Clock went backwards relative to the stored history
                logger.warning(f"{self._log_prefix()} Dropped OI sample for {symbol}: {e}")
        return alerts

    async def check_symbol_oi(self, symbol: str) -> bool:
        """
        Record current OI and alert on a move against the 15m/30m references.

        Windows without a reference sample are skipped. One message covers
        every window that triggered and consumes the symbol's cooldown once.
        """
        current_oi = await self.exchange.get_open_interest(symbol)
        now = self._clock()

        tracking = self.history(symbol)
        tracking.record(now, current_oi)
        tracking.prune(now, self.retention)

        triggered: List[OIChange] = []
        for window in OI_WINDOWS:
            reference = tracking.value_near(now, timedelta(minutes=window), self.tolerance)
            if reference is None:
                continue
            if has_significant_change(current_oi, reference, self.config.oi_threshold):
                triggered.append(OIChange(
                    window_minutes=window,
                    reference=reference,
                    current=current_oi,
                    change_pct=percent_change(current_oi, reference),
                ))

        if not triggered:
            return False

        if not can_alert(tracking, now, self.cooldown):
            logger.debug(f"{self._log_prefix()} OI trigger for {symbol} suppressed by cooldown")
            return False

        # A failed price fetch leaves the cooldown untouched
        price = await self.exchange.get_current_price(symbol)

        logger.info(
            f"{self._log_prefix()} OI trigger for {symbol}: "
            + ", ".join(f"{c.window_minutes}m {c.change_pct:+.2f}%" for c in triggered)
        )
        mark_alerted(tracking, now)
        await self._deliver(format_oi_alert(symbol, triggered, price))
        return True

    async def _deliver(self, text: str):
        # Shielded so cancellation never leaves a message half sent
        await asyncio.shield(self.notifier.send(self.user_id, self.config.target_channel, text))
        self.alerts_sent += 1
