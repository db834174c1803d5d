"""Notification ledger guaranteeing one notification per (user, alert, listing)."""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..config import get_env
from ..models.listing import Notification
from ..utils.clock import utcnow

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUS_DELIVERED = "delivered"
STATUS_BOUNCED = "bounced"

VALID_STATUSES = {STATUS_PENDING, STATUS_SENT, STATUS_FAILED, STATUS_DELIVERED, STATUS_BOUNCED}

# Expected forward transitions; anything else is logged but still applied
TRANSITIONS = {
    STATUS_PENDING: {STATUS_SENT, STATUS_FAILED},
    STATUS_SENT: {STATUS_DELIVERED, STATUS_BOUNCED},
}


class NotificationLedger:
    """
    Durable record of which notifications have been created.

    Features:
    - UNIQUE(user_id, alert_id, listing_id) enforced by the database
    - Duplicate inserts resolve to the existing row
    - Delivery status tracking (pending -> sent/failed -> delivered/bounced)
    - Retention sweep of old rows
    """

    DEFAULT_DB_PATH = "./data/notifications.db"
    RETENTION_DAYS = 30
    BUSY_TIMEOUT = 30  # seconds to wait on a locked database

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or get_env("DATABASE_PATH", self.DEFAULT_DB_PATH)
        self._ensure_db_directory()
        self._init_db()

    def _ensure_db_directory(self) -> None:
        """Create data directory if it doesn't exist."""
        db_dir = Path(self.db_path).parent
        if db_dir and not db_dir.exists():
            db_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created database directory: {db_dir}")

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path, timeout=self.BUSY_TIMEOUT)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS notifications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    alert_id INTEGER NOT NULL,
                    listing_id INTEGER NOT NULL,
                    notification_type TEXT NOT NULL DEFAULT 'new_listing',
                    email_status TEXT NOT NULL DEFAULT 'pending',
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    UNIQUE(user_id, alert_id, listing_id)
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_notifications_user_id
                ON notifications(user_id)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_notifications_created_at
                ON notifications(created_at)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_notifications_status
                ON notifications(email_status)
            """)

        logger.debug(f"Notification ledger initialized at {self.db_path}")

    def _sql(self, query: str) -> str:
        """Adapt ``?`` placeholders to the backend's paramstyle."""
        return query

    def _timestamp(self, value: datetime) -> Any:
        return value.isoformat(sep=" ", timespec="microseconds")

    def _execute(self, conn, query: str, params: tuple = ()):
        return conn.execute(self._sql(query), params)

    def _insert(self, conn, row: tuple) -> Optional[Any]:
        """
        Insert a notification row.

        Returns the new row, or None if the triple already exists.
        """
        try:
            cursor = self._execute(
                conn,
                """
                INSERT INTO notifications
                (user_id, alert_id, listing_id, notification_type, email_status,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                row,
            )
        except sqlite3.IntegrityError as e:
            if "UNIQUE" not in str(e).upper():
                raise
            return None
        return self._execute(
            conn, "SELECT * FROM notifications WHERE id = ?", (cursor.lastrowid,)
        ).fetchone()

    def exists(self, user_id: int, alert_id: int, listing_id: int) -> bool:
        """Check if a notification was already recorded for this triple."""
        with self._get_connection() as conn:
            row = self._execute(
                conn,
                """
                SELECT id FROM notifications
                WHERE user_id = ? AND alert_id = ? AND listing_id = ?
                """,
                (user_id, alert_id, listing_id),
            ).fetchone()
        return row is not None

    def record_if_absent(
        self,
        user_id: int,
        alert_id: int,
        listing_id: int,
        notification_type: str = "new_listing",
        email_status: str = STATUS_PENDING,
    ) -> Tuple[Notification, bool]:
        """
        Record a notification unless one exists for the triple.

        The insert is attempted first; a uniqueness conflict is resolved by
        reading the existing row, so concurrent callers see one row.

        Returns:
            Tuple of (notification, was_already_present)
        """
        if email_status not in VALID_STATUSES:
            raise ValueError(f"Unknown email status: {email_status}")

        now = self._timestamp(utcnow())
        with self._get_connection() as conn:
            row = self._insert(
                conn,
                (user_id, alert_id, listing_id, notification_type, email_status, now, now),
            )
            if row is None:
                row = self._execute(
                    conn,
                    """
                    SELECT * FROM notifications
                    WHERE user_id = ? AND alert_id = ? AND listing_id = ?
                    """,
                    (user_id, alert_id, listing_id),
                ).fetchone()
                if row is None:
                    raise RuntimeError(
                        f"Notification for user {user_id}, alert {alert_id}, "
                        f"listing {listing_id} conflicted but could not be read back"
                    )
                logger.debug(
                    f"Already notified user {user_id} for alert {alert_id}, listing {listing_id}"
                )
                return _to_notification(row), True

        return _to_notification(row), False

    def get(self, notification_id: int) -> Optional[Notification]:
        with self._get_connection() as conn:
            row = self._execute(
                conn, "SELECT * FROM notifications WHERE id = ?", (notification_id,)
            ).fetchone()
        return _to_notification(row) if row else None

    def update_status(self, notification_id: int, status: str) -> Optional[Notification]:
        """
        Set the delivery status reported by the notifier.

        Unexpected transitions are logged, not rejected, because delivery
        providers may report statuses out of order.

        Returns:
            The updated notification, or None if it doesn't exist

        Raises:
            ValueError: If status is not a known status value
        """
        if status not in VALID_STATUSES:
            raise ValueError(f"Unknown email status: {status}")

        with self._get_connection() as conn:
            row = self._execute(
                conn, "SELECT email_status FROM notifications WHERE id = ?", (notification_id,)
            ).fetchone()
            if row is None:
                logger.warning(f"Cannot update status of unknown notification {notification_id}")
                return None

            current = row["email_status"]
            if current != status and status not in TRANSITIONS.get(current, set()):
                logger.warning(
                    f"Unexpected status transition for notification {notification_id}: "
                    f"{current} -> {status}"
                )

            self._execute(
                conn,
                "UPDATE notifications SET email_status = ?, updated_at = ? WHERE id = ?",
                (status, self._timestamp(utcnow()), notification_id),
            )

        return self.get(notification_id)

    def retention_sweep(self, days_to_keep: Optional[int] = None) -> int:
        """
        Delete notifications older than a number of days.

        Args:
            days_to_keep: Age in days after which rows are removed.
                          Defaults to RETENTION_DAYS.

        Returns:
            Number of notifications removed
        """
        days = days_to_keep if days_to_keep is not None else self.RETENTION_DAYS
        cutoff = self._timestamp(utcnow() - timedelta(days=days))

        with self._get_connection() as conn:
            cursor = self._execute(
                conn, "DELETE FROM notifications WHERE created_at < ?", (cutoff,)
            )
            count = cursor.rowcount

        if count > 0:
            logger.info(f"Cleaned up {count} notifications older than {days} days")
        return count

    def for_user(self, user_id: int, limit: int = 100, offset: int = 0) -> List[Notification]:
        return self._select(
            "WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            (user_id, limit, offset),
        )

    def for_alert(self, alert_id: int, limit: int = 50) -> List[Notification]:
        return self._select(
            "WHERE alert_id = ? ORDER BY created_at DESC, id DESC LIMIT ?", (alert_id, limit)
        )

    def for_listing(self, listing_id: int) -> List[Notification]:
        return self._select("WHERE listing_id = ? ORDER BY created_at DESC, id DESC", (listing_id,))

    def recent(self, hours: int = 24, limit: int = 100) -> List[Notification]:
        """Notifications created in the last N hours, newest first."""
        cutoff = self._timestamp(utcnow() - timedelta(hours=hours))
        return self._select(
            "WHERE created_at > ? ORDER BY created_at DESC, id DESC LIMIT ?", (cutoff, limit)
        )

    def pending(self, limit: int = 1000) -> List[Notification]:
        """Notifications awaiting delivery, oldest first."""
        return self._select(
            "WHERE email_status = ? ORDER BY created_at ASC, id ASC LIMIT ?",
            (STATUS_PENDING, limit),
        )

    def count_for_user(self, user_id: int) -> int:
        with self._get_connection() as conn:
            row = self._execute(
                conn, "SELECT COUNT(*) AS count FROM notifications WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row["count"]

    def reset_failed(self, older_than_hours: int = 1, limit: int = 100) -> int:
        """
        Put failed notifications back to pending so they are retried.

        Selection and update happen in one statement, so a row whose status
        changed in the meantime is left alone.

        Returns:
            Number of notifications reset
        """
        cutoff = self._timestamp(utcnow() - timedelta(hours=older_than_hours))
        now = self._timestamp(utcnow())

        with self._get_connection() as conn:
            cursor = self._execute(
                conn,
                """
                UPDATE notifications SET email_status = ?, updated_at = ?
                WHERE email_status = ? AND id IN (
                    SELECT id FROM notifications
                    WHERE email_status = ? AND updated_at < ?
                    ORDER BY id LIMIT ?
                )
                """,
                (STATUS_PENDING, now, STATUS_FAILED, STATUS_FAILED, cutoff, limit),
            )
            count = cursor.rowcount

        if count > 0:
            logger.info(f"Reset {count} failed notifications for retry")
        return count

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about recorded notifications."""
        with self._get_connection() as conn:
            total = self._execute(
                conn, "SELECT COUNT(*) AS count FROM notifications"
            ).fetchone()["count"]
            users = self._execute(
                conn, "SELECT COUNT(DISTINCT user_id) AS count FROM notifications"
            ).fetchone()["count"]

            by_status = {}
            for row in self._execute(
                conn,
                "SELECT email_status, COUNT(*) AS count FROM notifications GROUP BY email_status",
            ).fetchall():
                by_status[row["email_status"]] = row["count"]

        sent = by_status.get(STATUS_SENT, 0) + by_status.get(STATUS_DELIVERED, 0)
        failed = by_status.get(STATUS_FAILED, 0) + by_status.get(STATUS_BOUNCED, 0)
        attempted = sent + failed

        return {
            "total_notifications": total,
            "users_notified": users,
            "by_status": by_status,
            "success_rate": sent / attempted if attempted else 0.0,
        }

    def reset(self) -> None:
        """Clear all notifications. Use with caution."""
        with self._get_connection() as conn:
            self._execute(conn, "DELETE FROM notifications")
        logger.warning("All notification records have been reset")

    def _select(self, clause: str, params: tuple) -> List[Notification]:
        with self._get_connection() as conn:
            rows = self._execute(conn, f"SELECT * FROM notifications {clause}", params).fetchall()
        return [_to_notification(row) for row in rows]


class PostgresNotificationLedger(NotificationLedger):
    """
    Notification ledger stored in the shared PostgreSQL database.

    Uses ``INSERT ... ON CONFLICT DO NOTHING`` so a duplicate never aborts
    the surrounding transaction.
    """

    def __init__(self):
        self.db_path = None
        self._init_db()

    @contextmanager
    def _get_connection(self):
        from ..db import get_connection

        with get_connection() as conn:
            yield conn

    def _init_db(self) -> None:
        from ..db import init_db

        init_db()

    def _sql(self, query: str) -> str:
        return query.replace("?", "%s")

    def _timestamp(self, value: datetime) -> Any:
        return value

    def _execute(self, conn, query: str, params: tuple = ()):
        cur = conn.cursor()
        cur.execute(self._sql(query), params)
        return cur

    def _insert(self, conn, row: tuple) -> Optional[Any]:
        return self._execute(
            conn,
            """
            INSERT INTO notifications
            (user_id, alert_id, listing_id, notification_type, email_status,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_id, alert_id, listing_id) DO NOTHING
            RETURNING *
            """,
            row,
        ).fetchone()


def create_ledger(db_path: Optional[str] = None) -> NotificationLedger:
    """Use PostgreSQL when DATABASE_URL is set, SQLite otherwise."""
    if get_env("DATABASE_URL") and not db_path:
        return PostgresNotificationLedger()
    return NotificationLedger(db_path)


def _to_notification(row) -> Notification:
    return Notification(
        id=row["id"],
        user_id=row["user_id"],
        alert_id=row["alert_id"],
        listing_id=row["listing_id"],
        notification_type=row["notification_type"],
        email_status=row["email_status"],
        created_at=_parse_timestamp(row["created_at"]),
        updated_at=_parse_timestamp(row["updated_at"]),
    )


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)
