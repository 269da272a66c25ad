"""
Database layer using aiosqlite for OI Pump Alerts Bot.
Stores each user's monitoring settings so sessions can be restored on restart.
"""
import logging
from datetime import datetime
from typing import List, Optional

import aiosqlite

from core.models import UserMonitorConfig

logger = logging.getLogger(__name__)


class Database:
    """Async database manager using SQLite."""

    def __init__(self, db_path: str):
        """Initialize database with path."""
        self.db_path = db_path
        self.conn: Optional[aiosqlite.Connection] = None

    async def connect(self):
        """Connect to the database and create tables if needed."""
        self.conn = await aiosqlite.connect(self.db_path)
        self.conn.row_factory = aiosqlite.Row
        await self._create_tables()
        logger.info(f"Database connected: {self.db_path}")

    async def close(self):
        """Close database connection."""
        if self.conn:
            await self.conn.close()
            logger.info("Database connection closed")

    async def _create_tables(self):
        """Create database tables if they don't exist."""
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS monitor_settings (
                user_id INTEGER PRIMARY KEY,
                time_frame TEXT NOT NULL DEFAULT '',
                change_threshold REAL NOT NULL DEFAULT 0,
                monitor_oi INTEGER NOT NULL DEFAULT 0,
                oi_threshold REAL NOT NULL DEFAULT 0,
                target_channel TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await self.conn.commit()

    @staticmethod
    def _row_to_config(row) -> UserMonitorConfig:
        return UserMonitorConfig(
            user_id=row['user_id'],
            time_frame=row['time_frame'],
            change_threshold=row['change_threshold'],
            monitor_oi=bool(row['monitor_oi']),
            oi_threshold=row['oi_threshold'],
            target_channel=row['target_channel'],
        )

    async def save_user_config(self, config: UserMonitorConfig) -> bool:
        """Insert or replace a user's monitoring settings."""
        try:
            await self.conn.execute("""
                INSERT INTO monitor_settings
                    (user_id, time_frame, change_threshold, monitor_oi, oi_threshold, target_channel, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    time_frame=excluded.time_frame,
                    change_threshold=excluded.change_threshold,
                    monitor_oi=excluded.monitor_oi,
                    oi_threshold=excluded.oi_threshold,
                    target_channel=excluded.target_channel,
                    updated_at=excluded.updated_at
            """, (
                config.user_id,
                config.time_frame,
                config.change_threshold,
                int(config.monitor_oi),
                config.oi_threshold,
                config.target_channel,
                datetime.utcnow().isoformat()
            ))
            await self.conn.commit()
            return True
        except Exception as e:
            logger.error(f"Error saving monitor settings for {config.user_id}: {e}")
            return False

    async def get_user_config(self, user_id: int) -> Optional[UserMonitorConfig]:
        """Get a user's settings, None if never configured."""
        cursor = await self.conn.execute("""
            SELECT * FROM monitor_settings WHERE user_id = ?
        """, (user_id,))
        row = await cursor.fetchone()
        return self._row_to_config(row) if row else None

    async def get_all_user_configs(self) -> List[UserMonitorConfig]:
        """Get settings for every configured user."""
        cursor = await self.conn.execute("""
            SELECT * FROM monitor_settings ORDER BY user_id
        """)
        rows = await cursor.fetchall()
        return [self._row_to_config(row) for row in rows]

    async def delete_user_config(self, user_id: int) -> bool:
        """Remove a user's settings. Returns True if a row was deleted."""
        try:
            cursor = await self.conn.execute("""
                DELETE FROM monitor_settings WHERE user_id = ?
            """, (user_id,))
            await self.conn.commit()
            return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error deleting monitor settings for {user_id}: {e}")
            return False
