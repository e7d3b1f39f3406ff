# =============================================================================
# jsolar_core/offline/local_database.py
# Local SQLite Cache for Offline Service Orders
# =============================================================================
"""
LocalCacheStore - SQLite-backed store that survives restarts and offline periods.

Holds three collections:
- service_orders: last known snapshot, keyed by order id
- pending_actions: mutation queue, ordered by insertion
- sync_meta: scalar metadata (last successful sync time)

Writes are best-effort: a storage failure is logged and swallowed, leaving
the previous contents intact.
"""

from __future__ import annotations
import json
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

from jsolar_core.config import DEFAULT_DB_PATH
from jsolar_core.data.models import ServiceOrder
from jsolar_core.errors import LocalCacheError
from jsolar_core.offline.pending_actions import (
    ActionKind,
    ActionPayload,
    PendingAction,
    payload_from_dict,
)

logger = logging.getLogger(__name__)

# Decoding failures for a single stored row (JSONDecodeError is a ValueError)
UNREADABLE_ROW_ERRORS = (ValueError, TypeError, KeyError, AttributeError)


class LocalCacheStore:
    """
    Local SQLite store for the offline service-order cache and sync queue.
    """

    SCHEMA = {
        "service_orders": """
            CREATE TABLE IF NOT EXISTS service_orders (
                id TEXT PRIMARY KEY,
                status TEXT,
                created_at TEXT,
                data_json TEXT NOT NULL
            )
        """,
        "pending_actions": """
            CREATE TABLE IF NOT EXISTS pending_actions (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                kind TEXT NOT NULL,
                order_id TEXT NOT NULL,
                payload_json TEXT,
                notes TEXT,
                created_at TEXT NOT NULL
            )
        """,
        "sync_meta": """
            CREATE TABLE IF NOT EXISTS sync_meta (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
    }

    LAST_SYNC_KEY = "last_sync"

    _instance: Optional[LocalCacheStore] = None
    _lock = threading.Lock()

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        """
        Initialize local cache store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._local = threading.local()
        self._initialized = False

    @classmethod
    def get_instance(cls, db_path: Optional[Union[str, Path]] = None) -> LocalCacheStore:
        """Get or create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = LocalCacheStore(db_path)
        return cls._instance

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> None:
        """
        Create the schema if needed.

        Raises:
            LocalCacheError: if the database cannot be opened or created
        """
        if self._initialized:
            return

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self.transaction() as conn:
                for table_name, schema in self.SCHEMA.items():
                    conn.execute(schema)
                    logger.debug(f"Created/verified table: {table_name}")
        except (OSError, sqlite3.Error) as e:
            raise LocalCacheError(
                f"Could not initialize local cache: {e}",
                db_path=str(self.db_path),
            ) from e

        self._initialized = True
        logger.info(f"Local cache initialized at: {self.db_path}")

    # =========================================================================
    # ORDER SNAPSHOT
    # =========================================================================

    def cache_orders(self, orders: List[ServiceOrder]) -> None:
        """
        Replace the cached snapshot wholesale and stamp the last sync time.

        On failure the previous snapshot is left untouched.
        """
        now = datetime.now().isoformat()
        try:
            with self.transaction() as conn:
                conn.execute("DELETE FROM service_orders")
                conn.executemany(
                    """
                    INSERT INTO service_orders (id, status, created_at, data_json)
                    VALUES (?, ?, ?, ?)
                    """,
                    [self._order_params(order) for order in orders],
                )
                conn.execute(
                    """
                    INSERT OR REPLACE INTO sync_meta (key, value, updated_at)
                    VALUES (?, ?, ?)
                    """,
                    [self.LAST_SYNC_KEY, now, now],
                )
        except sqlite3.Error as e:
            logger.warning(f"Could not cache {len(orders)} orders: {e}")

    def get_cached_orders(self) -> List[ServiceOrder]:
        """Get the cached snapshot, newest first ([] if none)."""
        try:
            rows = self._get_connection().execute(
                "SELECT data_json FROM service_orders ORDER BY created_at DESC"
            ).fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Could not read cached orders: {e}")
            return []

        orders = []
        for row in rows:
            order = self._row_to_order(row)
            if order is not None:
                orders.append(order)
        return orders

    def get_cached_order(self, order_id: str) -> Optional[ServiceOrder]:
        """Get one cached order by id."""
        try:
            row = self._get_connection().execute(
                "SELECT data_json FROM service_orders WHERE id = ?",
                [order_id],
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Could not read cached order {order_id}: {e}")
            return None

        return self._row_to_order(row) if row else None

    def update_cached_order(self, order: ServiceOrder) -> None:
        """Upsert a single order into the snapshot."""
        try:
            with self.transaction() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO service_orders (id, status, created_at, data_json)
                    VALUES (?, ?, ?, ?)
                    """,
                    self._order_params(order),
                )
        except sqlite3.Error as e:
            logger.warning(f"Could not update cached order {order.id}: {e}")

    @staticmethod
    def _order_params(order: ServiceOrder) -> List[Any]:
        return [
            order.id,
            order.status.value,
            order.created_at,
            json.dumps(order.to_row(), default=str),
        ]

    # =========================================================================
    # PENDING ACTION QUEUE
    # =========================================================================

    def add_pending_action(
        self,
        kind: Union[ActionKind, str],
        order_id: str,
        payload: Optional[ActionPayload] = None,
        notes: Optional[str] = None,
    ) -> Optional[PendingAction]:
        """
        Append an action to the queue.

        Returns:
            The stored PendingAction, or None if storage failed
        """
        kind = ActionKind(kind)
        if payload is None:
            payload = payload_from_dict(kind, None)
        if payload.kind is not kind:
            raise ValueError(f"Payload {type(payload).__name__} does not match kind {kind.value}")

        action = PendingAction(
            id=uuid.uuid4().hex,
            order_id=order_id,
            payload=payload,
            notes=notes,
            created_at=datetime.now(),
        )

        try:
            with self.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO pending_actions
                        (id, kind, order_id, payload_json, notes, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        action.id,
                        kind.value,
                        order_id,
                        json.dumps(payload.to_dict(), default=str),
                        notes,
                        action.created_at.isoformat(),
                    ],
                )
        except sqlite3.Error as e:
            logger.warning(f"Could not queue {kind.value} action for order {order_id}: {e}")
            return None

        logger.debug(f"Queued {kind.value} action {action.id} for order {order_id}")
        return action

    def get_pending_actions(self) -> List[PendingAction]:
        """Get the queue in insertion order."""
        try:
            rows = self._get_connection().execute(
                "SELECT * FROM pending_actions ORDER BY seq ASC"
            ).fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Could not read pending actions: {e}")
            return []

        actions = []
        for row in rows:
            try:
                actions.append(self._row_to_action(row))
            except UNREADABLE_ROW_ERRORS as e:
                # stays queued; counted as failed by the drain
                logger.warning(f"Skipping unreadable pending action {row['id']}: {e}")
        return actions

    def remove_pending_action(self, action_id: str) -> None:
        """Delete one action; removing an unknown id is a no-op."""
        try:
            with self.transaction() as conn:
                conn.execute("DELETE FROM pending_actions WHERE id = ?", [action_id])
        except sqlite3.Error as e:
            logger.warning(f"Could not remove pending action {action_id}: {e}")

    def get_pending_actions_count(self) -> int:
        """Get number of queued actions."""
        try:
            row = self._get_connection().execute(
                "SELECT COUNT(*) AS count FROM pending_actions"
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Could not count pending actions: {e}")
            return 0
        return row["count"] if row else 0

    @staticmethod
    def _row_to_order(row: sqlite3.Row) -> Optional[ServiceOrder]:
        try:
            return ServiceOrder.from_row(json.loads(row["data_json"]))
        except UNREADABLE_ROW_ERRORS as e:
            logger.warning(f"Skipping unreadable cached order: {e}")
            return None

    @staticmethod
    def _row_to_action(row: sqlite3.Row) -> PendingAction:
        data: Dict[str, Any] = json.loads(row["payload_json"]) if row["payload_json"] else {}
        return PendingAction(
            id=row["id"],
            order_id=row["order_id"],
            payload=payload_from_dict(row["kind"], data),
            notes=row["notes"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # =========================================================================
    # SYNC METADATA
    # =========================================================================

    def get_last_sync_time(self) -> Optional[datetime]:
        """Get the time of the last successful full fetch."""
        try:
            row = self._get_connection().execute(
                "SELECT value FROM sync_meta WHERE key = ?",
                [self.LAST_SYNC_KEY],
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Could not read last sync time: {e}")
            return None

        if not row or not row["value"]:
            return None
        return datetime.fromisoformat(row["value"])

    def clear(self) -> None:
        """Drop every cached order, queued action and sync marker."""
        try:
            with self.transaction() as conn:
                for table_name in self.SCHEMA:
                    conn.execute(f"DELETE FROM {table_name}")
        except sqlite3.Error as e:
            logger.warning(f"Could not clear local cache: {e}")
        else:
            logger.info("Local cache cleared")

    def close(self) -> None:
        """Close database connection."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None


# Singleton accessor
_local_cache: Optional[LocalCacheStore] = None


def get_local_cache(db_path: Optional[Union[str, Path]] = None) -> LocalCacheStore:
    """Get the global LocalCacheStore instance."""
    global _local_cache
    if _local_cache is None:
        _local_cache = LocalCacheStore.get_instance(db_path)
        _local_cache.initialize()
    return _local_cache
