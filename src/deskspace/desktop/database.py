"""SQLite storage handle shared by the desktop services."""

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import structlog

logger = structlog.get_logger()

SCHEMA = """
CREATE TABLE IF NOT EXISTS desktops (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL UNIQUE,
    handle TEXT NOT NULL UNIQUE,
    theme TEXT NOT NULL DEFAULT 'sketch',
    background_url TEXT,
    background_position TEXT NOT NULL DEFAULT 'cover',
    title TEXT,
    description TEXT,
    is_public INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    desktop_id TEXT NOT NULL REFERENCES desktops(id) ON DELETE CASCADE,
    parent_id TEXT REFERENCES items(id) ON DELETE CASCADE,
    variant TEXT NOT NULL,
    file_type TEXT,
    title TEXT NOT NULL,
    subtitle TEXT,
    description TEXT,
    body TEXT,
    header_image TEXT,
    thumbnail_url TEXT,
    url TEXT,
    details TEXT,
    gallery TEXT,
    links TEXT,
    use_tabs INTEGER NOT NULL DEFAULT 0,
    window_width INTEGER,
    sort_order INTEGER NOT NULL,
    position_x REAL NOT NULL,
    position_y REAL NOT NULL,
    z_index INTEGER NOT NULL DEFAULT 0,
    publish_status TEXT NOT NULL,
    published_at TEXT,
    access_level TEXT NOT NULL,
    price_amount REAL,
    price_currency TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_items_siblings
    ON items (desktop_id, parent_id, sort_order);

CREATE TABLE IF NOT EXISTS tabs (
    item_id TEXT NOT NULL REFERENCES items(id) ON DELETE CASCADE,
    id TEXT NOT NULL,
    label TEXT NOT NULL,
    icon TEXT,
    sort_order INTEGER NOT NULL,
    PRIMARY KEY (item_id, id)
);

CREATE TABLE IF NOT EXISTS blocks (
    item_id TEXT NOT NULL REFERENCES items(id) ON DELETE CASCADE,
    id TEXT NOT NULL,
    tab_id TEXT,
    type TEXT NOT NULL,
    data TEXT NOT NULL,
    sort_order INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_blocks_item ON blocks (item_id, tab_id);

CREATE TABLE IF NOT EXISTS dock_items (
    id TEXT PRIMARY KEY,
    desktop_id TEXT NOT NULL REFERENCES desktops(id) ON DELETE CASCADE,
    icon TEXT NOT NULL,
    label TEXT NOT NULL,
    action TEXT NOT NULL,
    target TEXT NOT NULL,
    sort_order INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS view_settings (
    desktop_id TEXT PRIMARY KEY REFERENCES desktops(id) ON DELETE CASCADE,
    active_mode TEXT NOT NULL,
    page_order TEXT NOT NULL,
    present_order TEXT NOT NULL,
    present_auto INTEGER NOT NULL,
    present_delay INTEGER NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS unlock_ledger (
    email TEXT NOT NULL,
    desktop_id TEXT NOT NULL REFERENCES desktops(id) ON DELETE CASCADE,
    source_item_id TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (email, desktop_id)
);
"""


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


class Database:
    """Single SQLite connection guarded by a lock.

    Writers and readers both take the lock, so a reader never observes a
    transaction that is only partly applied. The connection uses
    check_same_thread=False because FastAPI may serve requests from a
    worker thread.
    """

    def __init__(self, path: str = ":memory:") -> None:
        """Initialize database handle (call initialize() before use).

        Args:
            path: Database file path, or ":memory:" for a private database.
        """
        self.path = path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Open the connection and create tables if missing."""
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(
            self.path,
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(SCHEMA)
        logger.info("database_initialized", path=self.path)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of statements as one atomic unit.

        Commits when the block exits normally and rolls back on any
        exception, which is then re-raised.

        Yields:
            The underlying connection.
        """
        with self._lock:
            conn = self._connection()
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        """Hold the lock for a consistent multi-statement read.

        Yields:
            The underlying connection.
        """
        with self._lock:
            yield self._connection()

    def ping(self) -> None:
        """Run a trivial query, raising sqlite3.Error if unavailable."""
        with self.read() as conn:
            conn.execute("SELECT 1")

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.info("database_closed", path=self.path)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("Database is not initialized")
        return self._conn
