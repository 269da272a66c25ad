"""
Notification system for delivering alert messages to users.
Routes each message through the Telegram bot the user picked as channel.
"""
import asyncio
import logging
from typing import Dict, Optional, Set

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramRetryAfter, TelegramForbiddenError

logger = logging.getLogger(__name__)
alerts_logger = logging.getLogger("alerts")


class Notifier:
    """
    Sends alert texts through named Telegram bots.

    Delivery is best effort: failures are logged and never retried.
    """

    def __init__(self, bots: Dict[str, Bot], rate_limit_delay: float = 0.05):
        """Initialize notifier with channel name -> bot mapping."""
        self.bots = bots
        self._rate_limit_delay = rate_limit_delay
        self._blocked: Set[tuple] = set()  # (channel, chat_id)
        self.usernames: Dict[str, str] = {}  # channel -> bot username

    @property
    def channels(self) -> list[str]:
        return list(self.bots.keys())

    def has_channel(self, channel: str) -> bool:
        return channel in self.bots

    async def resolve_usernames(self) -> Dict[str, str]:
        """
        Look up each bot's username via getMe.

        A bot can only message users who started it, so channel links
        are shown to users when they pick a channel.
        """
        for name, bot in self.bots.items():
            try:
                me = await bot.get_me()
            except Exception as e:
                logger.error(f"Could not resolve username for bot '{name}': {e}")
                continue
            if me.username:
                self.usernames[name] = me.username
        return dict(self.usernames)

    def bot_link(self, channel: str) -> Optional[str]:
        """t.me link for a channel's bot, if its username is known."""
        username = self.usernames.get(channel)
        return f"https://t.me/{username}" if username else None

    async def send(self, user_id: int, channel: str, text: str) -> bool:
        """
        Deliver a message to a user through a channel.

        Args:
            user_id: Telegram chat ID of the user
            channel: Name of the bot to send through
            text: Markdown message text

        Returns:
            True if Telegram accepted the message
        """
        bot = self.bots.get(channel)
        if bot is None:
            logger.error(f"Channel '{channel}' not configured, dropping message for user {user_id}")
            return False

        if (channel, user_id) in self._blocked:
            logger.debug(f"User {user_id} blocked channel '{channel}', skipping")
            return False

        # Rate limiting
        await asyncio.sleep(self._rate_limit_delay)

        try:
            await bot.send_message(
                chat_id=user_id,
                text=text,
                parse_mode=ParseMode.MARKDOWN,
                disable_web_page_preview=True
            )
        except TelegramRetryAfter as e:
            logger.warning(f"Rate limit hit on '{channel}' for chat {user_id} (retry after {e.retry_after}s), message dropped")
            return False
        except TelegramForbiddenError:
            # User blocked the bot
            logger.warning(f"Bot '{channel}' blocked by chat {user_id}")
            self._blocked.add((channel, user_id))
            return False
        except Exception as e:
            logger.error(f"Error sending message via '{channel}' to chat {user_id}: {e}")
            return False

        alerts_logger.info(f"[{channel}] -> {user_id}: {text.splitlines()[0]}")
        return True

    def unblock(self, channel: str, user_id: int):
        """Forget a block, e.g. after the user talks to the bot again."""
        self._blocked.discard((channel, user_id))

    async def close(self):
        """Close every bot's HTTP session."""
        for name, bot in self.bots.items():
            try:
                await bot.session.close()
            except Exception as e:
                logger.error(f"Error closing bot '{name}': {e}")
