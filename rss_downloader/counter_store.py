"""
Counter store for RSS Downloader.

Durable per-link attempt counts kept in SQLite, so links that already
downloaded or failed too often are not fetched again after a restart.
"""
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

DEFAULT_RETRY_LIMIT = 3
DB_FILENAME = '.downloaded.db'

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS urls (
    id INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL,
    link VARCHAR(1024) NOT NULL,
    download_count INTEGER NOT NULL DEFAULT '0',
    update_time TimeStamp NOT NULL DEFAULT (datetime('now','localtime'))
);
"""

UNIQUE_LINK_INDEX_SQL = "CREATE UNIQUE INDEX IF NOT EXISTS idx_urls_link ON urls(link)"


class _LinkLock:
    """A link's lock and the number of threads holding or waiting for it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class StorageIntegrityError(Exception):
    """Raised when the counter store cannot be read or written."""


class LinkStatus(Enum):
    PENDING = 'pending'
    SUCCEEDED = 'succeeded'
    EXHAUSTED = 'exhausted'


@dataclass
class LinkRecord:
    """One row of the counter store."""

    link: str
    attempt_count: int
    last_update: Optional[datetime]
    succeeded: bool = False


class CounterStore:
    """
    Link -> attempt count ledger shared by all feed pollers.

    Every thread gets its own SQLite connection. Read-modify-write of a link
    happens under that link's own lock, so two pollers updating the same link
    never lose an update while different links never wait on each other.
    """

    def __init__(self, db_path: str, retry_limit: int = DEFAULT_RETRY_LIMIT):
        """
        Open (and create if needed) the store.

        Args:
            db_path: Path to the SQLite database file
            retry_limit: Attempt count at which a link is no longer retried

        Raises:
            StorageIntegrityError: If the database cannot be opened or migrated
        """
        if retry_limit < 1:
            raise ValueError("retry_limit must be a positive integer")

        self.db_path = db_path
        self.retry_limit = retry_limit

        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

        self._link_locks: Dict[str, _LinkLock] = {}
        self._link_locks_guard = threading.Lock()

        self._initialize_database()
        logger.debug(f"CounterStore opened at {db_path} (retry limit {retry_limit})")

    @classmethod
    def open(cls, settings_dir: str, retry_limit: int = DEFAULT_RETRY_LIMIT) -> 'CounterStore':
        """
        Open the store file inside the settings directory, creating the directory.

        Args:
            settings_dir: Directory holding the store file
            retry_limit: Attempt count at which a link is no longer retried

        Returns:
            CounterStore instance

        Raises:
            OSError: If the settings directory cannot be created
        """
        os.makedirs(settings_dir, exist_ok=True)
        return cls(os.path.join(settings_dir, DB_FILENAME), retry_limit)

    def _initialize_database(self):
        """Create the table, add columns missing from older files and the link index."""
        conn = self._connection()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA_SQL)

            columns = {row['name'] for row in conn.execute("PRAGMA table_info(urls)")}
            if 'succeeded' not in columns:
                conn.execute("ALTER TABLE urls ADD COLUMN succeeded INTEGER NOT NULL DEFAULT 0")
            conn.commit()
        except sqlite3.Error as e:
            raise StorageIntegrityError(f"Cannot initialize counter store {self.db_path}: {e}") from e

        try:
            conn.execute(UNIQUE_LINK_INDEX_SQL)
            conn.commit()
        except sqlite3.IntegrityError as e:
            # Files written without the index may already hold duplicate links
            conn.rollback()
            logger.warning(f"Counter store has duplicate links, uniqueness not enforced: {e}")
        except sqlite3.Error as e:
            raise StorageIntegrityError(f"Cannot initialize counter store {self.db_path}: {e}") from e

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, 'conn', None)
        if conn is None:
            try:
                conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
            except sqlite3.Error as e:
                raise StorageIntegrityError(f"Cannot open counter store {self.db_path}: {e}") from e
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    @contextmanager
    def _link_lock(self, link: str) -> Iterator[None]:
        """Hold the link's lock; the entry is dropped once nobody holds or waits for it."""
        with self._link_locks_guard:
            entry = self._link_locks.get(link)
            if entry is None:
                entry = self._link_locks[link] = _LinkLock()
            entry.users += 1

        try:
            with entry.lock:
                yield
        finally:
            with self._link_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._link_locks[link]

    def _read(self, link: str) -> Optional[sqlite3.Row]:
        try:
            return self._connection().execute(
                "SELECT link, download_count, succeeded, update_time FROM urls WHERE link = ?",
                (link,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageIntegrityError(f"Error reading count for {link}: {e}") from e

    def _read_count(self, link: str) -> Tuple[int, bool]:
        row = self._read(link)
        if row is None:
            return 0, False
        return row['download_count'], bool(row['succeeded'])

    def _write(self, link: str, count: int, succeeded: bool) -> None:
        """Replace the link's row: delete then insert, in one transaction."""
        conn = self._connection()
        try:
            with conn:
                conn.execute("DELETE FROM urls WHERE link = ?", (link,))
                conn.execute(
                    "INSERT INTO urls (link, download_count, succeeded) VALUES (?, ?, ?)",
                    (link, count, int(succeeded))
                )
        except sqlite3.Error as e:
            raise StorageIntegrityError(f"Error writing count for {link}: {e}") from e

    def get_count(self, link: str) -> int:
        """
        Get the attempt count of a link.

        Args:
            link: Link URL

        Returns:
            Stored count, or 0 if the link has never been attempted

        Raises:
            StorageIntegrityError: On any database error
        """
        count, _ = self._read_count(link)
        return count

    def set_count(self, link: str, count: int, succeeded: bool = False) -> None:
        """
        Replace the stored count of a link.

        Args:
            link: Link URL
            count: New count, between 0 and the retry limit
            succeeded: Whether the link reached the limit by downloading successfully

        Raises:
            ValueError: If count is out of range
            StorageIntegrityError: On any database error
        """
        if not 0 <= count <= self.retry_limit:
            raise ValueError(f"count must be between 0 and {self.retry_limit}, got {count}")

        with self._link_lock(link):
            self._write(link, count, succeeded)

    def increment(self, link: str) -> int:
        """
        Record one more failed attempt for a link.

        Returns:
            The new count, never above the retry limit
        """
        with self._link_lock(link):
            count, succeeded = self._read_count(link)
            count = min(count + 1, self.retry_limit)
            self._write(link, count, succeeded)
        return count

    def mark_succeeded(self, link: str) -> None:
        """Pin a downloaded link at the retry limit so it is never fetched again."""
        self.set_count(link, self.retry_limit, succeeded=True)

    def is_eligible(self, link: str) -> bool:
        return self.get_count(link) < self.retry_limit

    def get_status(self, link: str) -> LinkStatus:
        count, succeeded = self._read_count(link)
        return self._status(count, succeeded)

    def _status(self, count: int, succeeded: bool) -> LinkStatus:
        if count < self.retry_limit:
            return LinkStatus.PENDING
        return LinkStatus.SUCCEEDED if succeeded else LinkStatus.EXHAUSTED

    def get_record(self, link: str) -> Optional[LinkRecord]:
        row = self._read(link)
        return _row_to_record(row) if row else None

    def list_records(self) -> List[LinkRecord]:
        """
        Get every stored link, oldest update first.

        Returns:
            List of LinkRecord
        """
        try:
            rows = self._connection().execute(
                "SELECT link, download_count, succeeded, update_time FROM urls ORDER BY update_time, id"
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageIntegrityError(f"Error listing counter store: {e}") from e
        return [_row_to_record(r) for r in rows]

    def status_of(self, record: LinkRecord) -> LinkStatus:
        return self._status(record.attempt_count, record.succeeded)

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return date_parser.parse(value)
    except (ValueError, OverflowError):
        logger.warning(f"Unparseable update_time in counter store: {value!r}")
        return None


def _row_to_record(row: sqlite3.Row) -> LinkRecord:
    return LinkRecord(
        link=row['link'],
        attempt_count=row['download_count'],
        last_update=_parse_timestamp(row['update_time']),
        succeeded=bool(row['succeeded']),
    )
