from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import sqlite_utils

from .errors import DurableWriteFailure

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "notification_opened"


@dataclass(frozen=True)
class InboxEntry:
    url: str
    data: Dict[str, Any]
    timestamp: int
    id: Optional[int] = None


def now_ms() -> int:
    return int(time.time() * 1000)


class DurableInbox:
    """
    Append store for notification clicks that found no listener.

    Entries are written to SQLite through sqlite-utils. The dispatch path only
    ever appends; reading and removing entries is left to whoever drains the
    inbox later. Storage calls run in a worker thread so the event loop is not
    blocked while the write is committed.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:", table: str = DEFAULT_TABLE):
        self.path = str(db_path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.table_name = table
        self._lock = threading.RLock()
        self.db = sqlite_utils.Database(sqlite3.connect(self.path, check_same_thread=False))
        self._init_tables()

    def _init_tables(self) -> None:
        """Create the inbox table if it doesn't exist."""
        self.db[self.table_name].create({
            "id": int,
            "url": str,
            "data": str,
            "timestamp": int,
        }, pk="id", not_null={"url", "data", "timestamp"}, if_not_exists=True)
        self.db[self.table_name].create_index(["timestamp"], if_not_exists=True)
        logger.info(f"Inbox table {self.table_name} ready at {self.path}")

    def _insert(self, entry: InboxEntry) -> int:
        row = {
            "url": entry.url,
            "data": json.dumps(entry.data),
            "timestamp": entry.timestamp,
        }
        with self._lock:
            return self.db[self.table_name].insert(row).last_pk

    async def append(self, entry: InboxEntry) -> int:
        """
        Persist an entry and return its row id once the write is committed.

        Args:
            entry: Entry to store

        Returns:
            Row id of the stored entry

        Raises:
            DurableWriteFailure: If the entry cannot be serialized or written
        """
        try:
            entry_id = await asyncio.to_thread(self._insert, entry)
        except (sqlite3.Error, TypeError, ValueError) as exc:
            logger.error(f"Failed to store notification click for {entry.url}: {exc}")
            raise DurableWriteFailure(f"Could not store inbox entry for {entry.url}") from exc
        logger.info(f"Stored notification click for {entry.url} as inbox entry {entry_id}")
        return entry_id

    def _rows(self, limit: Optional[int]) -> List[InboxEntry]:
        with self._lock:
            rows = list(self.db[self.table_name].rows_where(order_by="timestamp, id", limit=limit))
        return [
            InboxEntry(id=row["id"], url=row["url"], data=json.loads(row["data"]), timestamp=row["timestamp"])
            for row in rows
        ]

    async def entries(self, limit: Optional[int] = None) -> List[InboxEntry]:
        """Stored entries, oldest first."""
        return await asyncio.to_thread(self._rows, limit)

    def _delete(self, entry_id: int) -> bool:
        with self._lock:
            result = self.db.execute(f"DELETE FROM [{self.table_name}] WHERE id = ?", [entry_id])
            self.db.conn.commit()
            return result.rowcount > 0

    async def remove(self, entry_id: int) -> bool:
        return await asyncio.to_thread(self._delete, entry_id)

    def count(self) -> int:
        with self._lock:
            return self.db[self.table_name].count

    def cleanup_old(self, days: int = 7) -> int:
        """
        Delete entries older than ``days``.

        Returns:
            Number of entries deleted
        """
        cutoff = now_ms() - days * 24 * 60 * 60 * 1000
        with self._lock:
            result = self.db.execute(f"DELETE FROM [{self.table_name}] WHERE timestamp < ?", [cutoff])
            self.db.conn.commit()
        deleted = result.rowcount
        logger.info(f"Cleaned up {deleted} old inbox entries")
        return deleted

    def close(self) -> None:
        with self._lock:
            self.db.close()
