"""Database connection, DDL, and low-level lookups for sentence-miner."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from sentence_miner.exceptions import DatabaseError

SCHEMA_VERSION = "1.0"

# Seconds a connection waits on another writer before raising "locked"
BUSY_TIMEOUT = 30.0

# Ids per IN list; stays under SQLite's default limit on bound parameters
CHUNK_SIZE = 500

_NOW = "strftime('%Y-%m-%dT%H:%M:%f', 'now')"

# ---------------------------------------------------------------------------
# DDL statements
# ---------------------------------------------------------------------------

_DDL = f"""
CREATE TABLE IF NOT EXISTS meta (
    key TEXT NOT NULL,
    value TEXT,
    UNIQUE (key)
);

-- Identity is owned elsewhere; this table only anchors foreign keys
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY,
    username TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ({_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({_NOW}),
    UNIQUE (username)
);

CREATE TABLE IF NOT EXISTS words (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users (id),
    dictionary_form TEXT NOT NULL,
    reading TEXT NOT NULL,
    frequency INTEGER NOT NULL DEFAULT 1 CHECK( frequency > 0 ),
    is_mined BOOLEAN CHECK( is_mined IN (0, 1) ) DEFAULT 0 NOT NULL,
    created_at TEXT NOT NULL DEFAULT ({_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({_NOW}),
    UNIQUE (user_id, dictionary_form, reading)
);
CREATE INDEX IF NOT EXISTS word_rank_index
    ON words (user_id, frequency DESC, dictionary_form, reading, id);

CREATE TABLE IF NOT EXISTS mining_batches (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users (id),
    created_at TEXT NOT NULL DEFAULT ({_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({_NOW})
);
CREATE INDEX IF NOT EXISTS mining_batch_user_index ON mining_batches (user_id);

CREATE TABLE IF NOT EXISTS sentences (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users (id),
    word_id INTEGER NOT NULL REFERENCES words (id),
    text TEXT NOT NULL,
    is_pending BOOLEAN CHECK( is_pending IN (0, 1) ) DEFAULT 1 NOT NULL,
    mining_batch_id INTEGER REFERENCES mining_batches (id),
    created_at TEXT NOT NULL DEFAULT ({_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({_NOW}),
    CHECK( is_pending = (mining_batch_id IS NULL) )
);
CREATE INDEX IF NOT EXISTS sentence_is_pending_index ON sentences (is_pending);
CREATE INDEX IF NOT EXISTS sentence_user_pending_index ON sentences (user_id, is_pending);
CREATE INDEX IF NOT EXISTS sentence_batch_index ON sentences (mining_batch_id);

CREATE TABLE IF NOT EXISTS pipeline_events (
    rowid INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users (id),
    event TEXT NOT NULL CHECK( event IN ('SUBMIT', 'REJECT', 'DISCARD', 'BATCH') ),
    entity_id INTEGER,
    detail TEXT,
    timestamp TEXT NOT NULL DEFAULT ({_NOW})
);
CREATE INDEX IF NOT EXISTS pipeline_event_user_index ON pipeline_events (user_id, event);
CREATE INDEX IF NOT EXISTS pipeline_event_timestamp_index ON pipeline_events (timestamp);

-- Timestamp bookkeeping
CREATE TRIGGER IF NOT EXISTS users_set_updated_at
    AFTER UPDATE ON users FOR EACH ROW WHEN NEW.updated_at = OLD.updated_at
BEGIN
    UPDATE users SET updated_at = {_NOW} WHERE id = NEW.id;
END;

CREATE TRIGGER IF NOT EXISTS words_set_updated_at
    AFTER UPDATE ON words FOR EACH ROW WHEN NEW.updated_at = OLD.updated_at
BEGIN
    UPDATE words SET updated_at = {_NOW} WHERE id = NEW.id;
END;

CREATE TRIGGER IF NOT EXISTS sentences_set_updated_at
    AFTER UPDATE ON sentences FOR EACH ROW WHEN NEW.updated_at = OLD.updated_at
BEGIN
    UPDATE sentences SET updated_at = {_NOW} WHERE id = NEW.id;
END;

CREATE TRIGGER IF NOT EXISTS mining_batches_set_updated_at
    AFTER UPDATE ON mining_batches FOR EACH ROW WHEN NEW.updated_at = OLD.updated_at
BEGIN
    UPDATE mining_batches SET updated_at = {_NOW} WHERE id = NEW.id;
END;

-- One-way state transitions
CREATE TRIGGER IF NOT EXISTS words_frequency_never_decreases
    BEFORE UPDATE OF frequency ON words FOR EACH ROW
    WHEN NEW.frequency < OLD.frequency
BEGIN
    SELECT RAISE(ABORT, 'word frequency cannot decrease');
END;

CREATE TRIGGER IF NOT EXISTS words_mined_never_reverts
    BEFORE UPDATE OF is_mined ON words FOR EACH ROW
    WHEN OLD.is_mined = 1 AND NEW.is_mined = 0
BEGIN
    SELECT RAISE(ABORT, 'mined word cannot be unmined');
END;

CREATE TRIGGER IF NOT EXISTS sentences_claimed_once
    BEFORE UPDATE OF mining_batch_id ON sentences FOR EACH ROW
    WHEN OLD.mining_batch_id IS NOT NULL
BEGIN
    SELECT RAISE(ABORT, 'sentence already belongs to a mining batch');
END;

CREATE TRIGGER IF NOT EXISTS sentences_claimed_kept
    BEFORE DELETE ON sentences FOR EACH ROW
    WHEN OLD.mining_batch_id IS NOT NULL
BEGIN
    SELECT RAISE(ABORT, 'sentence belongs to a mining batch');
END;
"""


def connect(
    db_path: str | Path = ":memory:",
    *,
    check_same_thread: bool = True,
    timeout: float = BUSY_TIMEOUT,
) -> sqlite3.Connection:
    """Open a connection with the miner's PRAGMA settings.

    Connections run in autocommit mode; transactions are opened explicitly
    by :class:`sentence_miner.store.Store`.
    """
    db_path_str = str(db_path)
    conn = sqlite3.connect(
        db_path_str,
        timeout=timeout,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.execute("PRAGMA foreign_keys = ON")
    if db_path_str != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Initialize all tables if they don't exist. Set schema version."""
    conn.executescript(_DDL)
    conn.execute(
        "INSERT OR IGNORE INTO meta (key, value) VALUES ('schema_version', ?)",
        (SCHEMA_VERSION,),
    )
    conn.execute(
        "INSERT OR IGNORE INTO meta (key, value) "
        f"VALUES ('created_at', {_NOW})",
    )


def check_schema_version(conn: sqlite3.Connection) -> None:
    """Verify the database schema version is compatible."""
    try:
        row = conn.execute(
            "SELECT value FROM meta WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        # meta table doesn't exist - uninitialized DB
        return
    if row is None:
        return
    version = row[0]
    if version != SCHEMA_VERSION:
        raise DatabaseError(
            f"Incompatible schema version: {version} "
            f"(expected {SCHEMA_VERSION})"
        )


# ---------------------------------------------------------------------------
# User helpers
# ---------------------------------------------------------------------------

def user_exists(conn: sqlite3.Connection, user_id: int) -> bool:
    row = conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone()
    return row is not None


# ---------------------------------------------------------------------------
# Word helpers
# ---------------------------------------------------------------------------

def get_word_row(
    conn: sqlite3.Connection, user_id: int, word_id: int
) -> sqlite3.Row | None:
    """Get a word row by ID, scoped to its owner."""
    return conn.execute(
        "SELECT * FROM words WHERE id = ? AND user_id = ?",
        (word_id, user_id),
    ).fetchone()


def get_word_row_by_key(
    conn: sqlite3.Connection, user_id: int, dictionary_form: str, reading: str
) -> sqlite3.Row | None:
    """Get a word row by its natural key."""
    return conn.execute(
        "SELECT * FROM words "
        "WHERE user_id = ? AND dictionary_form = ? AND reading = ?",
        (user_id, dictionary_form, reading),
    ).fetchone()


# ---------------------------------------------------------------------------
# Sentence helpers
# ---------------------------------------------------------------------------

def get_sentence_row(
    conn: sqlite3.Connection, user_id: int, sentence_id: int
) -> sqlite3.Row | None:
    """Get a sentence row by ID, scoped to its owner."""
    return conn.execute(
        "SELECT * FROM sentences WHERE id = ? AND user_id = ?",
        (sentence_id, user_id),
    ).fetchone()


def count_pending(conn: sqlite3.Connection, user_id: int) -> int:
    return conn.execute(
        "SELECT COUNT(*) FROM sentences WHERE user_id = ? AND is_pending = 1",
        (user_id,),
    ).fetchone()[0]


def get_pending_rows(conn: sqlite3.Connection, user_id: int) -> list[sqlite3.Row]:
    """All pending sentence rows of a user, in creation order."""
    return conn.execute(
        "SELECT * FROM sentences WHERE user_id = ? AND is_pending = 1 "
        "ORDER BY id",
        (user_id,),
    ).fetchall()


# ---------------------------------------------------------------------------
# Mining batch helpers
# ---------------------------------------------------------------------------

def get_batch_row(
    conn: sqlite3.Connection, user_id: int, batch_id: int
) -> sqlite3.Row | None:
    """Get a mining batch row by ID, scoped to its owner."""
    return conn.execute(
        "SELECT * FROM mining_batches WHERE id = ? AND user_id = ?",
        (batch_id, user_id),
    ).fetchone()


def get_batch_sentence_ids(conn: sqlite3.Connection, batch_id: int) -> tuple[int, ...]:
    rows = conn.execute(
        "SELECT id FROM sentences WHERE mining_batch_id = ? ORDER BY id",
        (batch_id,),
    ).fetchall()
    return tuple(r[0] for r in rows)
