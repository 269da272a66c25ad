"""
OI Pump Alerts Bot - Main Entry Point
Per-user Binance futures price and open interest alerts over Telegram.
"""
import asyncio
import sys
from datetime import timedelta
from typing import Dict

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from config import MAIN_CHANNEL, get_settings, ensure_data_directory
from core.binance_client import BinanceFuturesClient
from core.database import Database
from core.supervisor import MonitorSupervisor
from bot.notifier import Notifier
from bot.handlers import commands
from utils.logging_config import setup_logging

loggers = setup_logging(log_level=get_settings().log_level)
logger = loggers['system']


class OIPumpAlertsBot:
    """Main bot application orchestrating all components."""

    def __init__(self):
        """Initialize bot components."""
        self.settings = get_settings()

        # One Bot per delivery channel; the main one also receives commands
        self.bots: Dict[str, Bot] = {
            name: Bot(token=token) for name, token in self.settings.bot_tokens().items()
        }
        self.dp = Dispatcher(storage=MemoryStorage())
        self.db: Database = None
        self.notifier: Notifier = None
        self.exchange: BinanceFuturesClient = None
        self.supervisor: MonitorSupervisor = None

    @property
    def main_bot(self) -> Bot:
        return self.bots[MAIN_CHANNEL]

    async def setup(self):
        """Setup all components."""
        logger.info("Setting up OI Pump Alerts Bot...")

        ensure_data_directory()

        self.db = Database(self.settings.database_path)
        await self.db.connect()

        self.notifier = Notifier(self.bots)
        logger.info(f"Delivery channels: {', '.join(self.notifier.channels)}")
        await self.notifier.resolve_usernames()

        self.exchange = BinanceFuturesClient(
            rest_url=self.settings.binance_futures_rest_url,
            timeout=self.settings.request_timeout
        )

        self.supervisor = MonitorSupervisor(
            exchange=self.exchange,
            notifier=self.notifier,
            interval=self.settings.monitor_interval_seconds,
            retention=timedelta(minutes=self.settings.oi_retention_minutes),
            tolerance=timedelta(minutes=self.settings.oi_lookup_tolerance_minutes),
            cooldown=timedelta(minutes=self.settings.oi_alert_cooldown_minutes),
        )

        # Setup handlers
        commands.db = self.db
        commands.supervisor = self.supervisor
        commands.notifier = self.notifier
        self.dp.include_router(commands.router)

        await self.supervisor.load_symbols()
        await self.restore_sessions()

        logger.info("Setup complete!")

    async def restore_sessions(self):
        """Start a session for every stored configuration that has a monitor enabled."""
        configs = await self.db.get_all_user_configs()
        eligible = [c for c in configs if c.is_eligible]
        logger.info(f"Restoring {len(eligible)}/{len(configs)} configured users...")

        started = 0
        for config in eligible:
            if await self.supervisor.start_session(config):
                started += 1

        logger.info(f"✓ Started {started}/{len(eligible)} monitoring sessions")

    async def start(self):
        """Start polling for commands."""
        logger.info("Starting OI Pump Alerts Bot...")
        try:
            await self.dp.start_polling(self.main_bot, allowed_updates=self.dp.resolve_used_update_types())
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Graceful shutdown."""
        logger.info("Shutting down OI Pump Alerts Bot...")

        if self.supervisor:
            await self.supervisor.shutdown_all()
        if self.exchange:
            await self.exchange.close()
        if self.db:
            await self.db.close()
        if self.notifier:
            await self.notifier.close()

        logger.info("Shutdown complete")


async def main():
    """Main entry point."""
    bot = OIPumpAlertsBot()

    try:
        await bot.setup()
        await bot.start()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
