"""Domain model dataclasses for sentence-miner."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from enum import Enum


class EventType(str, Enum):
    """Kinds of entries written to the pipeline event log."""

    SUBMIT = "SUBMIT"
    REJECT = "REJECT"
    DISCARD = "DISCARD"
    BATCH = "BATCH"


# ---------------------------------------------------------------------------
# Analyzer output
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Token:
    """A vocabulary unit extracted from a sentence."""

    dictionary_form: str
    reading: str


@dataclass(frozen=True, slots=True)
class Morpheme:
    """A single analyzed morpheme with its part-of-speech features."""

    surface: str
    dictionary_form: str
    reading: str
    part_of_speech: tuple[str, ...]

    def to_token(self) -> Token:
        return Token(self.dictionary_form, self.reading)


@dataclass(frozen=True, slots=True)
class TargetWord:
    """Caller's hint for the word a submitted sentence exemplifies.

    ``reading`` may be omitted, in which case the first token with a
    matching dictionary form is used.
    """

    dictionary_form: str
    reading: str | None = None

    def matches(self, token: Token) -> bool:
        if token.dictionary_form != self.dictionary_form:
            return False
        return self.reading is None or token.reading == self.reading


# ---------------------------------------------------------------------------
# Persisted entities
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Word:
    """A vocabulary entry in a user's ledger."""

    id: int
    user_id: int
    dictionary_form: str
    reading: str
    frequency: int
    is_mined: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Word:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            dictionary_form=row["dictionary_form"],
            reading=row["reading"],
            frequency=row["frequency"],
            is_mined=bool(row["is_mined"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(frozen=True, slots=True)
class Sentence:
    """A submitted example sentence bound to the word it exemplifies."""

    id: int
    user_id: int
    word_id: int
    text: str
    is_pending: bool
    mining_batch_id: int | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Sentence:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            word_id=row["word_id"],
            text=row["text"],
            is_pending=bool(row["is_pending"]),
            mining_batch_id=row["mining_batch_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(frozen=True, slots=True)
class MiningBatch:
    """An immutable group of formerly pending sentences."""

    id: int
    user_id: int
    created_at: str
    updated_at: str
    sentence_ids: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class SentenceEntry:
    """A sentence joined with its word, as shown to the user.

    ``frequency_rank`` is the word's position in the global frequency list
    (lower is more common), independent of the user's own ``frequency``.
    """

    sentence: Sentence
    word: Word
    frequency_rank: int


@dataclass(frozen=True, slots=True)
class PipelineEvent:
    """One row of the pipeline event log."""

    id: int
    user_id: int
    event: str
    entity_id: int | None
    detail: str | None
    timestamp: str
