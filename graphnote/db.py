"""
SQLite database shared by the object and relation stores.

Objects and relations live in one file so that foreign keys can cascade
relation deletes when an object is removed. The connection runs in
autocommit mode (``isolation_level=None``); multi-statement writes use
``BEGIN IMMEDIATE`` through :meth:`Database.transaction`.

Derived day columns (``created_date``, ``updated_date``) are VIRTUAL
generated columns over the UTC timestamps, so they cannot drift from the
timestamps they are computed from.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from .types import ObjectType, RelationType

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Edge kinds that may exist at most once per (from, to) pair
UNIQUE_RELATION_TYPES = (RelationType.TAGGED_WITH, RelationType.MEMBER_OF)


def _sql_list(values) -> str:
    return ", ".join(f"'{v.value}'" for v in values)


_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS objects (
    id TEXT PRIMARY KEY NOT NULL,
    type TEXT NOT NULL CHECK (type IN ({_sql_list(ObjectType)})),
    title TEXT NOT NULL CHECK (length(trim(title)) > 0 AND length(title) <= 500),
    content TEXT NOT NULL DEFAULT '',
    properties TEXT NOT NULL DEFAULT '{{}}' CHECK (json_valid(properties)),
    metadata TEXT NOT NULL DEFAULT '{{}}' CHECK (json_valid(metadata)),
    archived INTEGER NOT NULL DEFAULT 0 CHECK (archived IN (0, 1)),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_date TEXT GENERATED ALWAYS AS (substr(created_at, 1, 10)) VIRTUAL,
    updated_date TEXT GENERATED ALWAYS AS (substr(updated_at, 1, 10)) VIRTUAL
);

CREATE INDEX IF NOT EXISTS idx_objects_type ON objects(type);
CREATE INDEX IF NOT EXISTS idx_objects_archived ON objects(archived);
CREATE INDEX IF NOT EXISTS idx_objects_created_at ON objects(created_at);
CREATE INDEX IF NOT EXISTS idx_objects_updated_at ON objects(updated_at);
CREATE INDEX IF NOT EXISTS idx_objects_created_date ON objects(created_date);
CREATE INDEX IF NOT EXISTS idx_objects_updated_date ON objects(updated_date);
CREATE INDEX IF NOT EXISTS idx_objects_type_archived ON objects(type, archived);

-- One live daily note per date
CREATE UNIQUE INDEX IF NOT EXISTS idx_daily_note_unique_date
ON objects (json_extract(properties, '$.date.value'))
WHERE type = 'daily-note' AND archived = 0;

CREATE TABLE IF NOT EXISTS relations (
    id TEXT PRIMARY KEY NOT NULL,
    from_object_id TEXT NOT NULL
        REFERENCES objects(id) ON DELETE CASCADE,
    to_object_id TEXT NOT NULL
        REFERENCES objects(id) ON DELETE CASCADE,
    relation_type TEXT NOT NULL CHECK (relation_type IN ({_sql_list(RelationType)})),
    metadata TEXT NOT NULL DEFAULT '{{}}' CHECK (json_valid(metadata)),
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_relations_from_type
ON relations(from_object_id, relation_type);
CREATE INDEX IF NOT EXISTS idx_relations_to_type
ON relations(to_object_id, relation_type);

CREATE UNIQUE INDEX IF NOT EXISTS idx_relations_unique_edge
ON relations(from_object_id, to_object_id, relation_type)
WHERE relation_type IN ({_sql_list(UNIQUE_RELATION_TYPES)});
"""


class Database:
    """
    One SQLite connection plus the lock that serializes its use.

    Separate ``Database`` instances on the same file (other threads, other
    processes) coordinate through SQLite's own locking; WAL mode and a busy
    timeout keep them from failing immediately on contention.
    """

    def __init__(self, db_path: Path):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._init_db()

    @property
    def path(self) -> Path:
        return self._db_path

    def _init_db(self) -> None:
        """Open the connection and bring the schema up to date."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(self._db_path), check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._migrate()

    def _migrate(self) -> None:
        """Migrate the database to SCHEMA_VERSION."""
        version = self._conn.execute("PRAGMA user_version").fetchone()[0]
        if version >= SCHEMA_VERSION:
            return
        with self.transaction() as conn:
            # Re-check under the write lock: another process may have won
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version >= SCHEMA_VERSION:
                return
            for statement in _SCHEMA.split(";"):
                if statement.strip():
                    conn.execute(statement)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        logger.debug("Initialized schema v%d at %s", SCHEMA_VERSION, self._db_path)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Run one statement (atomic on its own in autocommit mode)."""
        with self._lock:
            return self._conn.execute(sql, params)

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the write lock for a group of statements."""
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()
