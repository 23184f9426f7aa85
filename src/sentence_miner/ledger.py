"""Vocabulary ledger: per-user words, frequencies and mined state."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator

from sentence_miner import db as _db
from sentence_miner.exceptions import NotFoundError
from sentence_miner.models import Word
from sentence_miner.store import Store

logger = logging.getLogger(__name__)

# Words fetched per round trip by frequency_rank()
_PAGE_SIZE = 200


def require_user(conn: sqlite3.Connection, user_id: int) -> None:
    if not _db.user_exists(conn, user_id):
        raise NotFoundError(f"User not found: {user_id!r}")


def upsert_word(
    conn: sqlite3.Connection, user_id: int, dictionary_form: str, reading: str
) -> Word:
    """Insert a word with frequency 1 or add one occurrence to it.

    A single statement, so concurrent writers cannot lose an increment.
    Mined state is left untouched.
    """
    conn.execute(
        "INSERT INTO words (user_id, dictionary_form, reading) VALUES (?, ?, ?) "
        "ON CONFLICT (user_id, dictionary_form, reading) "
        "DO UPDATE SET frequency = frequency + 1",
        (user_id, dictionary_form, reading),
    )
    row = _db.get_word_row_by_key(conn, user_id, dictionary_form, reading)
    return Word.from_row(row)


def mark_words_mined(
    conn: sqlite3.Connection, user_id: int, word_ids: Iterable[int]
) -> int:
    """Flag the user's unmined words in ``word_ids``; return how many flipped."""
    ids = sorted(set(word_ids))
    updated = 0
    for start in range(0, len(ids), _db.CHUNK_SIZE):
        chunk = ids[start:start + _db.CHUNK_SIZE]
        placeholders = ", ".join("?" * len(chunk))
        cur = conn.execute(
            f"UPDATE words SET is_mined = 1 "
            f"WHERE user_id = ? AND is_mined = 0 AND id IN ({placeholders})",
            (user_id, *chunk),
        )
        updated += cur.rowcount
    return updated


class VocabularyLedger:
    """Public ledger operations, each in its own per-user transaction."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def upsert_occurrence(
        self, user_id: int, dictionary_form: str, reading: str
    ) -> Word:
        with self._store.transaction(user_id) as conn:
            require_user(conn, user_id)
            word = upsert_word(conn, user_id, dictionary_form, reading)
        logger.debug(
            f"User {user_id}: {dictionary_form} [{reading}] "
            f"frequency={word.frequency}"
        )
        return word

    def mark_mined(self, user_id: int, word_ids: Iterable[int]) -> int:
        ids = list(word_ids)
        with self._store.transaction(user_id) as conn:
            require_user(conn, user_id)
            return mark_words_mined(conn, user_id, ids)

    def get_word(self, user_id: int, word_id: int) -> Word:
        def fetch(conn: sqlite3.Connection) -> sqlite3.Row | None:
            require_user(conn, user_id)
            return _db.get_word_row(conn, user_id, word_id)

        row = self._store.read(fetch)
        if row is None:
            raise NotFoundError(f"Word not found: {word_id!r}")
        return Word.from_row(row)

    def find_word(
        self, user_id: int, dictionary_form: str, reading: str
    ) -> Word | None:
        def fetch(conn: sqlite3.Connection) -> sqlite3.Row | None:
            require_user(conn, user_id)
            return _db.get_word_row_by_key(conn, user_id, dictionary_form, reading)

        row = self._store.read(fetch)
        return Word.from_row(row) if row is not None else None

    def frequency_rank(self, user_id: int) -> Iterator[Word]:
        """Yield the user's words, most frequent first.

        Ties are ordered by dictionary form, then reading, then id.  Words
        are fetched a page at a time with keyset pagination, so no lock or
        transaction is held between pages; a word whose frequency changes
        mid-iteration may be seen twice or skipped.

        Raises NotFoundError on first iteration for an unknown user.
        """
        self._store.read(lambda conn: require_user(conn, user_id))

        def first_page(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute(
                "SELECT * FROM words WHERE user_id = ? "
                "ORDER BY frequency DESC, dictionary_form, reading, id LIMIT ?",
                (user_id, _PAGE_SIZE),
            ).fetchall()

        rows = self._store.read(first_page)
        while rows:
            for row in rows:
                yield Word.from_row(row)
            last = rows[-1]
            key = (last["frequency"], last["dictionary_form"], last["reading"], last["id"])

            def next_page(conn: sqlite3.Connection) -> list[sqlite3.Row]:
                freq, form, reading, word_id = key
                return conn.execute(
                    "SELECT * FROM words WHERE user_id = ? AND ("
                    "frequency < ? "
                    "OR (frequency = ? AND dictionary_form > ?) "
                    "OR (frequency = ? AND dictionary_form = ? AND reading > ?) "
                    "OR (frequency = ? AND dictionary_form = ? AND reading = ? AND id > ?)"
                    ") ORDER BY frequency DESC, dictionary_form, reading, id LIMIT ?",
                    (user_id, freq, freq, form, freq, form, reading,
                     freq, form, reading, word_id, _PAGE_SIZE),
                ).fetchall()

            rows = self._store.read(next_page)
