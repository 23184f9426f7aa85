"""Transactional access to the sentence-miner database.

Every mutation for a user runs under that user's in-process lock and inside
a ``BEGIN IMMEDIATE`` transaction, which also takes SQLite's write lock so
that other processes sharing the file are serialized too.  Reads never take
a user lock.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from sentence_miner import db as _db
from sentence_miner.exceptions import TransactionConflictError

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


def _is_conflict(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


class _UserLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class UserLocks:
    """One lock per user id.

    An entry lives only while some thread holds or waits on it, so the
    registry does not grow with every user a long-lived process has seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, _UserLock] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, user_id: int) -> Generator[None, None, None]:
        with self._guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = self._locks[user_id] = _UserLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if not entry.users:
                    del self._locks[user_id]


class Store:
    """Connection management, per-user transactions and read retries.

    File databases give each thread its own connection.  A ``:memory:``
    database only exists inside one connection, so it is shared by all
    threads behind a lock.
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        *,
        busy_timeout: float = _db.BUSY_TIMEOUT,
    ) -> None:
        self._db_path = str(db_path)
        self._in_memory = self._db_path == ":memory:"
        self._busy_timeout = busy_timeout
        self._local = threading.local()
        self._shared_lock = threading.RLock()
        self._shared_conn: sqlite3.Connection | None = None
        # (owning thread, connection); the shared :memory: one has no owner
        self._connections: list[
            tuple[threading.Thread | None, sqlite3.Connection]
        ] = []
        self._connections_lock = threading.Lock()
        self._user_locks = UserLocks()
        self._closed = False

        with self._connection() as conn:
            _db.check_schema_version(conn)
            _db.init_db(conn)

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def open_connections(self) -> int:
        """Connections still open, after closing those of finished threads."""
        with self._connections_lock:
            self._prune()
            return len(self._connections)

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._connections_lock:
            for _, conn in self._connections:
                conn.close()
            self._connections.clear()
            self._closed = True

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def _prune(self) -> None:
        # caller holds _connections_lock
        alive = []
        for owner, conn in self._connections:
            if owner is None or owner.is_alive():
                alive.append((owner, conn))
            else:
                conn.close()
        if len(alive) != len(self._connections):
            logger.debug(
                f"Closed {len(self._connections) - len(alive)} connection(s) "
                "of finished threads"
            )
        self._connections = alive

    def _open(self) -> sqlite3.Connection:
        # check_same_thread is off so connections of finished threads and
        # close() can be handled from any thread; a file connection is only
        # used by the thread owning it
        conn = _db.connect(
            self._db_path, check_same_thread=False, timeout=self._busy_timeout
        )
        owner = None if self._in_memory else threading.current_thread()
        with self._connections_lock:
            self._prune()
            self._connections.append((owner, conn))
        return conn

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        if self._closed:
            raise sqlite3.ProgrammingError("Cannot operate on a closed store.")
        if self._in_memory:
            with self._shared_lock:
                if self._shared_conn is None:
                    self._shared_conn = self._open()
                yield self._shared_conn
            return
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._local.conn = self._open()
        yield conn

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self, user_id: int | None) -> Generator[None, None, None]:
        """Hold the in-process lock of ``user_id`` (no-op for ``None``)."""
        if user_id is None:
            yield
            return
        with self._user_locks.hold(user_id):
            yield

    @contextmanager
    def transaction(
        self, user_id: int | None = None
    ) -> Generator[sqlite3.Connection, None, None]:
        """A write transaction serialized per user.

        Lock and busy errors roll back and surface as
        :class:`TransactionConflictError`; they are never retried here
        because the caller cannot know whether a retry duplicates work.
        """
        with self.locked(user_id), self._connection() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as e:
                if _is_conflict(e):
                    raise TransactionConflictError(
                        f"Could not start transaction: {e}"
                    ) from e
                raise
            try:
                yield conn
                conn.execute("COMMIT")
            except sqlite3.OperationalError as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                if _is_conflict(e):
                    raise TransactionConflictError(
                        f"Transaction aborted: {e}"
                    ) from e
                raise
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    @contextmanager
    def _snapshot(self) -> Generator[sqlite3.Connection, None, None]:
        with self._connection() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
            finally:
                if conn.in_transaction:
                    conn.execute("COMMIT")

    def read(self, fn: Callable[[sqlite3.Connection], _T]) -> _T:
        """Run ``fn`` against one consistent snapshot.

        Reads are idempotent, so a lock conflict is retried once before
        being raised as :class:`TransactionConflictError`.
        """
        try:
            with self._snapshot() as conn:
                return fn(conn)
        except sqlite3.OperationalError as e:
            if not _is_conflict(e):
                raise
            logger.warning(f"Read conflict, retrying once: {e}")
        try:
            with self._snapshot() as conn:
                return fn(conn)
        except sqlite3.OperationalError as e:
            if _is_conflict(e):
                raise TransactionConflictError(f"Read failed twice: {e}") from e
            raise
