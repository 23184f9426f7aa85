"""Sentence intake queue: pending sentences and admission control."""

from __future__ import annotations

import logging
import sqlite3

from sentence_miner import db as _db
from sentence_miner import history as _hist
from sentence_miner.exceptions import NotFoundError, QueueFullError
from sentence_miner.frequency import FrequencyList
from sentence_miner.ledger import require_user
from sentence_miner.models import EventType, Sentence, SentenceEntry, Word
from sentence_miner.store import Store

logger = logging.getLogger(__name__)


def check_admission(conn: sqlite3.Connection, user_id: int, limit: int) -> int:
    """Raise QueueFullError when the user cannot take another sentence.

    Returns the current pending count.  Must run in the same transaction as
    the insert it guards.
    """
    pending = _db.count_pending(conn, user_id)
    if pending >= limit:
        raise QueueFullError(pending, limit)
    return pending


def insert_sentence(
    conn: sqlite3.Connection, user_id: int, word_id: int, text: str
) -> Sentence:
    if _db.get_word_row(conn, user_id, word_id) is None:
        raise NotFoundError(f"Word not found: {word_id!r}")
    cur = conn.execute(
        "INSERT INTO sentences (user_id, word_id, text) VALUES (?, ?, ?)",
        (user_id, word_id, text),
    )
    row = _db.get_sentence_row(conn, user_id, cur.lastrowid)
    return Sentence.from_row(row)


def entries_for(
    conn: sqlite3.Connection,
    where: str,
    params: tuple,
    frequency_list: FrequencyList,
) -> list[SentenceEntry]:
    """Sentences matching ``where`` joined with their words, by sentence id."""
    rows = conn.execute(
        "SELECT s.id AS s_id, s.user_id AS s_user_id, s.word_id, s.text, "
        "s.is_pending, s.mining_batch_id, s.created_at AS s_created_at, "
        "s.updated_at AS s_updated_at, w.* "
        f"FROM sentences s JOIN words w ON w.id = s.word_id WHERE {where} "
        "ORDER BY s.id",
        params,
    ).fetchall()
    entries = []
    for row in rows:
        sentence = Sentence(
            id=row["s_id"],
            user_id=row["s_user_id"],
            word_id=row["word_id"],
            text=row["text"],
            is_pending=bool(row["is_pending"]),
            mining_batch_id=row["mining_batch_id"],
            created_at=row["s_created_at"],
            updated_at=row["s_updated_at"],
        )
        word = Word.from_row(row)
        entries.append(SentenceEntry(
            sentence=sentence,
            word=word,
            frequency_rank=frequency_list.rank(word.dictionary_form, word.reading),
        ))
    return entries


class SentenceIntakeQueue:
    """Per-user bounded queue of pending sentences.

    ``limit`` is the maximum number of pending sentences a user may hold;
    0 rejects every sentence.
    """

    def __init__(
        self,
        store: Store,
        limit: int,
        frequency_list: FrequencyList | None = None,
    ) -> None:
        if limit < 0:
            raise ValueError(f"Pending sentence limit cannot be negative: {limit}")
        self._store = store
        self.limit = limit
        self._frequency_list = frequency_list or FrequencyList()

    def enqueue(self, user_id: int, word_id: int, text: str) -> Sentence:
        with self._store.transaction(user_id) as conn:
            require_user(conn, user_id)
            pending = check_admission(conn, user_id, self.limit)
            sentence = insert_sentence(conn, user_id, word_id, text)
            _hist.record_event(
                conn, user_id, EventType.SUBMIT, sentence.id,
                {"word_id": word_id},
            )
        logger.info(
            f"User {user_id}: queued sentence {sentence.id} "
            f"({pending + 1}/{self.limit} pending)"
        )
        return sentence

    def pending_snapshot(self, user_id: int) -> list[Sentence]:
        def fetch(conn: sqlite3.Connection) -> list[Sentence]:
            require_user(conn, user_id)
            return [Sentence.from_row(r) for r in _db.get_pending_rows(conn, user_id)]

        return self._store.read(fetch)

    def count_pending(self, user_id: int) -> int:
        def fetch(conn: sqlite3.Connection) -> int:
            require_user(conn, user_id)
            return _db.count_pending(conn, user_id)

        return self._store.read(fetch)

    def pending_entries(self, user_id: int) -> list[SentenceEntry]:
        """Pending sentences with their words, for display."""
        def fetch(conn: sqlite3.Connection) -> list[SentenceEntry]:
            require_user(conn, user_id)
            return entries_for(
                conn, "s.user_id = ? AND s.is_pending = 1", (user_id,),
                self._frequency_list,
            )

        return self._store.read(fetch)

    def discard(self, user_id: int, sentence_id: int) -> None:
        """Delete a pending sentence.  Sentences in a batch are kept."""
        with self._store.transaction(user_id) as conn:
            require_user(conn, user_id)
            row = _db.get_sentence_row(conn, user_id, sentence_id)
            if row is None or not row["is_pending"]:
                raise NotFoundError(f"Pending sentence not found: {sentence_id!r}")
            conn.execute("DELETE FROM sentences WHERE id = ?", (sentence_id,))
            _hist.record_event(
                conn, user_id, EventType.DISCARD, sentence_id,
                {"word_id": row["word_id"], "text": row["text"]},
            )
        logger.info(f"User {user_id}: discarded pending sentence {sentence_id}")
