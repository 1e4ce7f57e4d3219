"""Async SQLite notification store (WAL mode, serialized writes)."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import aiosqlite

from notifier.errors import ConflictError, NotFoundError, StoreError
from notifier.storage.migrations import apply_migrations
from notifier.storage.models import (
    Notification,
    NotificationQuery,
    Page,
    to_db_timestamp,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class DatabaseManager:
    """Async SQLite manager implementing :class:`NotificationStore`.

    Usage:
        db = DatabaseManager("data/notifier.db")
        await db.initialize()
        # ... use db ...
        await db.close()
    """

    def __init__(self, db_path: str, cache_size_mb: int = 16):
        self.db_path = db_path
        self.cache_size_mb = cache_size_mb
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create database, apply migrations, and configure pragmas."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        apply_migrations(self.db_path)

        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute(f"PRAGMA cache_size=-{self.cache_size_mb * 1000}")
        await self._conn.execute("PRAGMA synchronous=NORMAL")
        await self._conn.execute("PRAGMA temp_store=MEMORY")

        logger.info("Database initialized: %s", self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @asynccontextmanager
    async def _errors(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Yield the connection, translating driver errors into StoreError."""
        if self._conn is None:
            raise StoreError("Database not initialized")
        try:
            yield self._conn
        except sqlite3.Error as e:
            logger.error("Store operation %s failed: %s", operation, e)
            raise StoreError(f"{operation} failed: {e}") from e

    # --- Store interface ---

    async def find_many(self, query: NotificationQuery) -> List[Notification]:
        """Notifications matching ``query``, newest first."""
        where, params = _where(query)
        sql = f"SELECT * FROM notifications{where} ORDER BY sent_at DESC, id DESC"
        if query.limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([query.limit, query.offset])

        async with self._errors("find_many") as conn:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
        return [Notification.from_row(dict(r)) for r in rows]

    async def count(self, query: Optional[NotificationQuery] = None) -> int:
        where, params = _where(query or NotificationQuery())
        async with self._errors("count") as conn:
            cursor = await conn.execute(f"SELECT COUNT(*) FROM notifications{where}", params)
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def update_many(self, ids: Sequence[int], read_at: datetime) -> int:
        """Set ``read_at`` on the listed ids that are still unread.

        Already-read rows are left untouched, so repeating the call is a no-op.
        ``read_at`` is clamped to ``sent_at`` to keep ``read_at >= sent_at``.
        """
        ids = [int(i) for i in ids]
        if not ids:
            return 0

        placeholders = ", ".join("?" for _ in ids)
        async with self._errors("update_many") as conn:
            async with self._write_lock:
                cursor = await conn.execute(
                    f"""UPDATE notifications SET read_at = MAX(sent_at, ?)
                        WHERE read_at IS NULL AND id IN ({placeholders})""",
                    [to_db_timestamp(read_at), *ids],
                )
                await conn.commit()
        logger.info("Marked %d/%d notification(s) as read", cursor.rowcount, len(ids))
        return cursor.rowcount

    # --- CRUD ---

    async def create_notification(self, notification: Notification) -> Notification:
        """Insert a notification and return it with its assigned id."""
        async with self._errors("create_notification") as conn:
            async with self._write_lock:
                cursor = await conn.execute(
                    """INSERT INTO notifications
                       (name, email, phone, body, subject, sent_at, read_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    notification.to_row(),
                )
                await conn.commit()
                new_id = cursor.lastrowid

        created = await self.get_notification(new_id)
        assert created is not None
        return created

    async def get_notification(self, notification_id: int) -> Optional[Notification]:
        async with self._errors("get_notification") as conn:
            cursor = await conn.execute(
                "SELECT * FROM notifications WHERE id = ?", (notification_id,)
            )
            row = await cursor.fetchone()
        return Notification.from_row(dict(row)) if row else None

    async def mark_read(self, notification_id: int, read_at: datetime) -> Notification:
        """Mark one notification read.

        Raises NotFoundError if it does not exist, ConflictError if already read.
        """
        updated = await self.update_many([notification_id], read_at)
        notification = await self.get_notification(notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")
        if not updated:
            raise ConflictError("Notification already read")
        return notification

    async def paginate(self, page: int = 1, limit: int = 10, search: Optional[str] = None) -> Page:
        """One page of notifications, optionally filtered by name/email substring."""
        page = max(1, page)
        limit = min(MAX_PAGE_SIZE, max(1, limit))
        query = NotificationQuery(search=search or None, limit=limit, offset=(page - 1) * limit)

        notifications, total = await asyncio.gather(self.find_many(query), self.count(query))
        return Page(notifications=notifications, page=page, limit=limit, total=total)

    # --- Maintenance ---

    async def vacuum(self) -> None:
        """Run VACUUM to reclaim space and defragment."""
        async with self._errors("vacuum") as conn:
            async with self._write_lock:
                await conn.execute("VACUUM")

    async def get_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        stats: Dict[str, Any] = {
            "total_notifications": await self.count(),
            "unread_notifications": await self.count(NotificationQuery(unread_only=True)),
        }
        async with self._errors("get_stats") as conn:
            cursor = await conn.execute(
                """SELECT email, COUNT(*) AS cnt FROM notifications
                   GROUP BY email ORDER BY cnt DESC LIMIT 10"""
            )
            stats["notifications_by_sender"] = {
                r["email"]: r["cnt"] for r in await cursor.fetchall()
            }
            cursor = await conn.execute(
                "SELECT page_count * page_size as size FROM pragma_page_count(), pragma_page_size()"
            )
            row = await cursor.fetchone()
            stats["db_size_bytes"] = row[0] if row else 0
        return stats


def _where(query: NotificationQuery) -> Tuple[str, List[Any]]:
    """Build a WHERE clause (with leading space) and its parameters."""
    conditions: List[str] = []
    params: List[Any] = []

    if query.sent_since is not None:
        conditions.append("sent_at >= ?")
        params.append(to_db_timestamp(query.sent_since))
    if query.sent_before is not None:
        conditions.append("sent_at < ?")
        params.append(to_db_timestamp(query.sent_before))
    if query.unread_only:
        conditions.append("read_at IS NULL")
    if query.ids is not None:
        ids = [int(i) for i in query.ids]
        placeholders = ", ".join("?" for _ in ids)
        conditions.append(f"id IN ({placeholders})" if ids else "0")
        params.extend(ids)
    if query.search:
        pattern = "%" + _escape_like(query.search) + "%"
        conditions.append("(name LIKE ? ESCAPE '\\' OR email LIKE ? ESCAPE '\\')")
        params.extend([pattern, pattern])

    if not conditions:
        return "", params
    return " WHERE " + " AND ".join(conditions), params


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
