"""
Command handlers for OI Pump Alerts Bot.
Lets users configure price/OI monitoring and restarts their session on change.
"""
import logging
import time
from typing import Optional

from aiogram import Router
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import Message

from config import MAIN_CHANNEL
from core.database import Database
from core.models import UserMonitorConfig
from core.supervisor import MonitorSupervisor
from bot.notifier import Notifier
from utils.filters import VALID_TIMEFRAMES, normalize_timeframe, parse_threshold
from utils.formatting import format_config_summary

logger = logging.getLogger(__name__)

router = Router()

# Global references (will be set by main.py)
db: Database = None
supervisor: MonitorSupervisor = None
notifier: Notifier = None
start_time: float = time.time()


HELP_TEXT = f"""
📖 Commands:

/pump <timeframe> <threshold%> [channel] - alert when a candle moves more than threshold
/pump off - disable price alerts
/oi <threshold%> - alert when open interest moves more than threshold over 15m / 30m
/oi off - disable OI alerts
/channel <name> - choose the bot that delivers your alerts
/status - show your settings and monitoring state
/stop - stop all monitoring

Timeframes: {", ".join(VALID_TIMEFRAMES)}
Example: /pump 5m 3
"""


async def _current_config(user_id: int) -> UserMonitorConfig:
    config = await db.get_user_config(user_id)
    return config if config else UserMonitorConfig(user_id=user_id)


async def _apply_config(message: Message, config: UserMonitorConfig):
    """Persist settings and (re)start or stop the user's session."""
    if not await db.save_user_config(config):
        await message.answer("❌ Could not save your settings, please try again.")
        return

    # Picking a channel again means the user wants its alerts
    notifier.unblock(config.target_channel, config.user_id)

    if config.is_eligible:
        session = await supervisor.start_session(config)
        if session is None:
            await message.answer("⚠️ Settings saved, but monitoring could not start right now.")
            return
        await message.answer(
            f"✅ Monitoring active\n\n{format_config_summary(config)}{_channel_hint(config.target_channel)}"
        )
    else:
        await supervisor.stop_session(config.user_id)
        await message.answer(f"⏸ Monitoring paused\n\n{format_config_summary(config)}")


@router.message(CommandStart())
async def cmd_start(message: Message):
    """Handle /start command."""
    notifier.unblock(MAIN_CHANNEL, message.from_user.id)
    welcome_text = (
        "🚀 Welcome to OI Pump Alerts!\n\n"
        "I watch Binance USDT perpetuals for price pumps/dumps and open interest surges "
        "and alert you when your thresholds are crossed.\n"
        + HELP_TEXT
    )
    await message.answer(welcome_text)


@router.message(Command("help"))
async def cmd_help(message: Message):
    """Handle /help command."""
    await message.answer(HELP_TEXT)


@router.message(Command("pump"))
async def cmd_pump(message: Message, command: CommandObject):
    """Handle /pump <timeframe> <threshold> [channel]."""
    args = (command.args or "").split()
    config = await _current_config(message.from_user.id)

    if len(args) == 1 and args[0].lower() == "off":
        await _apply_config(message, config.model_copy(update={"time_frame": "", "change_threshold": 0.0}))
        return

    if len(args) not in (2, 3):
        await message.answer("Usage: /pump <timeframe> <threshold%> [channel]\nExample: /pump 5m 3")
        return

    time_frame = normalize_timeframe(args[0])
    if time_frame is None:
        await message.answer(f"❌ Unknown timeframe '{args[0]}'. Use one of: {', '.join(VALID_TIMEFRAMES)}")
        return

    threshold = parse_threshold(args[1])
    if threshold is None:
        await message.answer(f"❌ Invalid threshold '{args[1]}'. Use a positive percent, e.g. 3 or 2.5")
        return

    update = {"time_frame": time_frame, "change_threshold": threshold}
    if len(args) == 3:
        channel = _validate_channel(args[2])
        if channel is None:
            await message.answer(f"❌ Unknown channel '{args[2]}'. Available: {', '.join(notifier.channels)}")
            return
        update["target_channel"] = channel

    await _apply_config(message, config.model_copy(update=update))


@router.message(Command("oi"))
async def cmd_oi(message: Message, command: CommandObject):
    """Handle /oi <threshold|off>."""
    args = (command.args or "").split()
    config = await _current_config(message.from_user.id)

    if len(args) != 1:
        await message.answer("Usage: /oi <threshold%> or /oi off\nExample: /oi 5")
        return

    if args[0].lower() == "off":
        await _apply_config(message, config.model_copy(update={"monitor_oi": False, "oi_threshold": 0.0}))
        return

    threshold = parse_threshold(args[0])
    if threshold is None:
        await message.answer(f"❌ Invalid threshold '{args[0]}'. Use a positive percent, e.g. 5")
        return

    await _apply_config(message, config.model_copy(update={"monitor_oi": True, "oi_threshold": threshold}))


@router.message(Command("channel"))
async def cmd_channel(message: Message, command: CommandObject):
    """Handle /channel <name>."""
    name = (command.args or "").strip()
    channel = _validate_channel(name) if name else None
    if channel is None:
        await message.answer(f"Usage: /channel <name>\nAvailable: {', '.join(notifier.channels)}")
        return

    config = await _current_config(message.from_user.id)
    await _apply_config(message, config.model_copy(update={"target_channel": channel}))


@router.message(Command("stop"))
async def cmd_stop(message: Message):
    """Handle /stop command."""
    user_id = message.from_user.id
    await supervisor.stop_session(user_id)
    await db.delete_user_config(user_id)
    await message.answer("🛑 Monitoring stopped and settings cleared.")


@router.message(Command("status"))
async def cmd_status(message: Message):
    """Handle /status command."""
    user_id = message.from_user.id
    config = await db.get_user_config(user_id)
    if config is None:
        await message.answer("You have no monitoring configured yet. Send /help to get started.")
        return

    status = supervisor.get_status(user_id)
    if status is None:
        state_line = "⏸ Not running"
    else:
        last_tick = status.last_tick_at.strftime('%H:%M:%S UTC') if status.last_tick_at else "pending"
        state_line = (
            f"▶️ Running since {status.started_at.strftime('%Y-%m-%d %H:%M:%S UTC')}\n"
            f"Checks: {status.ticks} (last {last_tick}), alerts sent: {status.alerts_sent}"
        )

    uptime_hours = (time.time() - start_time) / 3600
    await message.answer(
        f"{format_config_summary(config)}\n\n{state_line}\n"
        f"Symbols: {len(supervisor.symbols)} | Bot uptime: {uptime_hours:.1f}h"
    )


def _validate_channel(name: str) -> Optional[str]:
    return name if notifier.has_channel(name) else None


def _channel_hint(channel: str) -> str:
    """Ask the user to start the delivering bot, which can't message them otherwise."""
    if channel == MAIN_CHANNEL:
        return ""
    link = notifier.bot_link(channel)
    if link is None:
        return f"\n\n👉 Alerts come from the '{channel}' bot. Open it and press Start to receive them."
    return f"\n\n👉 Alerts come from {link}. Open it and press Start to receive them."
