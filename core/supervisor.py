"""
Registry of running monitoring sessions.
Each user gets at most one session; starting a new one replaces the old.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from functools import partial
from typing import Callable, Dict, List, NamedTuple, Optional

from core.alert_policy import DEFAULT_COOLDOWN
from core.binance_client import BinanceFuturesClient, ExchangeDataError
from core.models import SessionStatus, UserMonitorConfig
from core.monitor_session import MonitorSession, utc_now
from core.oi_history import DEFAULT_RETENTION, DEFAULT_TOLERANCE

logger = logging.getLogger(__name__)


class SessionHandle(NamedTuple):
    session: MonitorSession
    task: asyncio.Task


class MonitorSupervisor:
    """
    Starts, replaces and stops per-user monitoring sessions.

    The registry lock only guards dict operations; no network I/O runs
    while it is held.
    """

    def __init__(
        self,
        exchange: BinanceFuturesClient,
        notifier,
        interval: float = 60,
        retention: timedelta = DEFAULT_RETENTION,
        tolerance: timedelta = DEFAULT_TOLERANCE,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the supervisor."""
        self.exchange = exchange
        self.notifier = notifier
        self.interval = interval
        self.retention = retention
        self.tolerance = tolerance
        self.cooldown = cooldown
        self._clock = clock

        # Symbol universe shared by all sessions, loaded at startup and
        # reloaded on demand while empty
        self.symbols: List[str] = []

        # user_id -> running session
        self._sessions: Dict[int, SessionHandle] = {}
        self._lock = asyncio.Lock()

    async def load_symbols(self) -> List[str]:
        """Fetch the tradable symbol universe. Returns [] on failure."""
        try:
            symbols = await self.exchange.list_tradable_symbols()
        except ExchangeDataError as e:
            logger.error(f"Failed to load tradable symbols: {e}")
            symbols = []

        if not symbols:
            logger.error("No tradable symbols available, monitoring sessions cannot start")
        else:
            logger.info(f"Loaded {len(symbols)} tradable symbols")

        self.symbols = symbols
        return symbols

    async def start_session(self, config: UserMonitorConfig) -> Optional[MonitorSession]:
        """
        Start monitoring a user, replacing any session already running for them.

        Returns:
            The new session, or None if the config is not eligible or no
            symbols are available
        """
        user_id = config.user_id

        if not config.is_eligible:
            logger.info(f"[User {user_id}] Settings have no active monitor, not starting a session")
            return None

        if not self.symbols:
            # Startup load may have failed; retry before giving up
            await self.load_symbols()

        if not self.symbols:
            logger.error(f"[User {user_id}] No symbols available for monitoring, session not started")
            return None

        if not self.notifier.has_channel(config.target_channel):
            logger.warning(f"[User {user_id}] Unknown channel '{config.target_channel}', alerts will not be delivered")

        session = MonitorSession(
            config=config,
            symbols=self.symbols,
            exchange=self.exchange,
            notifier=self.notifier,
            interval=self.interval,
            retention=self.retention,
            tolerance=self.tolerance,
            cooldown=self.cooldown,
            clock=self._clock,
        )

        async with self._lock:
            previous = self._sessions.pop(user_id, None)
            if previous is not None:
                previous.task.cancel()

            task = asyncio.create_task(session.run(), name=f"monitor-user-{user_id}")
            handle = SessionHandle(session, task)
            self._sessions[user_id] = handle
            task.add_done_callback(partial(self._on_session_done, user_id, handle))

        if previous is not None:
            logger.info(f"[User {user_id}] Replacing existing monitoring session")
            await asyncio.gather(previous.task, return_exceptions=True)

        logger.info(f"[User {user_id}] Monitoring session started")
        return session

    async def stop_session(self, user_id: int) -> bool:
        """Cancel a user's session. Returns False if none was running."""
        async with self._lock:
            handle = self._sessions.pop(user_id, None)

        if handle is None:
            logger.info(f"[User {user_id}] No monitoring session to stop")
            return False

        handle.task.cancel()
        await asyncio.gather(handle.task, return_exceptions=True)
        logger.info(f"[User {user_id}] Monitoring session stopped")
        return True

    async def shutdown_all(self):
        """Cancel every session and wait for them to exit."""
        async with self._lock:
            handles = list(self._sessions.values())
            self._sessions.clear()

        logger.info(f"Stopping {len(handles)} monitoring sessions...")
        for handle in handles:
            handle.task.cancel()

        if handles:
            await asyncio.gather(*(h.task for h in handles), return_exceptions=True)

        logger.info("All monitoring sessions stopped")

    def _on_session_done(self, user_id: int, handle: SessionHandle, task: asyncio.Task):
        # Only drop the entry if it still belongs to this session
        if self._sessions.get(user_id) is handle:
            del self._sessions[user_id]

        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[User {user_id}] Monitoring session crashed: {task.exception()}")

    def is_running(self, user_id: int) -> bool:
        handle = self._sessions.get(user_id)
        return handle is not None and not handle.task.done()

    def get_session(self, user_id: int) -> Optional[MonitorSession]:
        handle = self._sessions.get(user_id)
        return handle.session if handle else None

    def get_status(self, user_id: int) -> Optional[SessionStatus]:
        session = self.get_session(user_id)
        return session.status() if session else None

    def active_user_ids(self) -> List[int]:
        """Users with a registered session."""
        return list(self._sessions.keys())

    def get_session_count(self) -> int:
        return len(self._sessions)
