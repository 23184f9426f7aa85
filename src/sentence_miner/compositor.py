"""Batch compositor: turns pending sentences into immutable mining batches."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable

from sentence_miner import db as _db
from sentence_miner import history as _hist
from sentence_miner.exceptions import (
    EmptyBatchError,
    NotFoundError,
    TransactionConflictError,
    ValidationError,
)
from sentence_miner.frequency import FrequencyList
from sentence_miner.intake import entries_for
from sentence_miner.ledger import mark_words_mined, require_user
from sentence_miner.models import EventType, MiningBatch, SentenceEntry
from sentence_miner.store import Store

logger = logging.getLogger(__name__)


def _batch_from_row(conn: sqlite3.Connection, row: sqlite3.Row) -> MiningBatch:
    return MiningBatch(
        id=row["id"],
        user_id=row["user_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        sentence_ids=_db.get_batch_sentence_ids(conn, row["id"]),
    )


def _select_snapshot(
    conn: sqlite3.Connection, user_id: int, sentence_ids: Iterable[int] | None
) -> list[sqlite3.Row]:
    pending = _db.get_pending_rows(conn, user_id)
    if sentence_ids is None:
        return pending

    wanted = set(sentence_ids)
    if not wanted:
        raise ValidationError("No sentences provided")
    by_id = {row["id"]: row for row in pending}
    invalid = sorted(wanted - by_id.keys())
    if invalid:
        raise ValidationError(
            f"Invalid sentences provided (not pending): {invalid}"
        )
    return [by_id[i] for i in sorted(wanted)]


def _claim(
    conn: sqlite3.Connection, user_id: int, batch_id: int, sentence_ids: list[int]
) -> int:
    """Point unclaimed sentences at the batch; return how many were claimed."""
    claimed = 0
    for start in range(0, len(sentence_ids), _db.CHUNK_SIZE):
        chunk = sentence_ids[start:start + _db.CHUNK_SIZE]
        placeholders = ", ".join("?" * len(chunk))
        cur = conn.execute(
            f"UPDATE sentences SET mining_batch_id = ?, is_pending = 0 "
            f"WHERE user_id = ? AND mining_batch_id IS NULL "
            f"AND id IN ({placeholders})",
            (batch_id, user_id, *chunk),
        )
        claimed += cur.rowcount
    return claimed


class BatchCompositor:
    """Forms mining batches and reads them back."""

    def __init__(
        self, store: Store, frequency_list: FrequencyList | None = None
    ) -> None:
        self._store = store
        self._frequency_list = frequency_list or FrequencyList()

    def form_batch(
        self, user_id: int, sentence_ids: Iterable[int] | None = None
    ) -> MiningBatch:
        """Claim pending sentences into a new batch and mark their words mined.

        With ``sentence_ids`` only those sentences are claimed; every one of
        them must be pending and owned by the user.  Snapshot, claim and
        word flips happen in one transaction, so a concurrent request for
        the same user either sees the full batch committed or nothing.
        """
        with self._store.transaction(user_id) as conn:
            require_user(conn, user_id)
            snapshot = _select_snapshot(conn, user_id, sentence_ids)
            if not snapshot:
                raise EmptyBatchError(f"No pending sentences for user {user_id}")

            cur = conn.execute(
                "INSERT INTO mining_batches (user_id) VALUES (?)", (user_id,)
            )
            batch_id = cur.lastrowid

            claim_ids = [row["id"] for row in snapshot]
            claimed = _claim(conn, user_id, batch_id, claim_ids)
            if claimed != len(claim_ids):
                raise TransactionConflictError(
                    f"Claimed {claimed} of {len(claim_ids)} sentences; "
                    "batch abandoned"
                )

            word_ids = {row["word_id"] for row in snapshot}
            mined = mark_words_mined(conn, user_id, word_ids)
            _hist.record_event(
                conn, user_id, EventType.BATCH, batch_id,
                {"sentences": claim_ids, "words_mined": mined},
            )
            batch = _batch_from_row(conn, _db.get_batch_row(conn, user_id, batch_id))

        logger.info(
            f"User {user_id}: formed batch {batch.id} with "
            f"{len(batch.sentence_ids)} sentence(s), {mined} word(s) newly mined"
        )
        return batch

    def get_batch(self, user_id: int, batch_id: int) -> MiningBatch:
        def fetch(conn: sqlite3.Connection) -> MiningBatch:
            require_user(conn, user_id)
            row = _db.get_batch_row(conn, user_id, batch_id)
            if row is None:
                raise NotFoundError(f"Batch not found: {batch_id!r}")
            return _batch_from_row(conn, row)

        return self._store.read(fetch)

    def list_batches(self, user_id: int) -> list[MiningBatch]:
        def fetch(conn: sqlite3.Connection) -> list[MiningBatch]:
            require_user(conn, user_id)
            rows = conn.execute(
                "SELECT * FROM mining_batches WHERE user_id = ? ORDER BY id",
                (user_id,),
            ).fetchall()
            return [_batch_from_row(conn, r) for r in rows]

        return self._store.read(fetch)

    def batch_entries(self, user_id: int, batch_id: int) -> list[SentenceEntry]:
        def fetch(conn: sqlite3.Connection) -> list[SentenceEntry]:
            require_user(conn, user_id)
            if _db.get_batch_row(conn, user_id, batch_id) is None:
                raise NotFoundError(f"Batch not found: {batch_id!r}")
            return entries_for(
                conn, "s.mining_batch_id = ?", (batch_id,), self._frequency_list
            )

        return self._store.read(fetch)
