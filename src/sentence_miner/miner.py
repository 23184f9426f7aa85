"""SentenceMiner: main entry point for the sentence-miner library."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any, Optional

from sentence_miner import history as _hist
from sentence_miner.compositor import BatchCompositor
from sentence_miner.config import MinerConfig, load_config
from sentence_miner.exceptions import QueueFullError, ValidationError, WordBindingError
from sentence_miner.frequency import FrequencyList
from sentence_miner.intake import SentenceIntakeQueue, check_admission, insert_sentence
from sentence_miner.ledger import VocabularyLedger, require_user, upsert_word
from sentence_miner.models import (
    EventType,
    MiningBatch,
    Morpheme,
    PipelineEvent,
    Sentence,
    SentenceEntry,
    TargetWord,
    Token,
    Word,
)
from sentence_miner.store import Store
from sentence_miner.tokenizer import SudachiTokenizer, Tokenizer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Word binding policies
# ---------------------------------------------------------------------------

BindingStrategy = Callable[[Sequence[Token], Optional[TargetWord]], Token]


def bind_first_token(tokens: Sequence[Token], target: TargetWord | None) -> Token:
    """Bind to the target word if given, else to the first token.

    The target must be one of the sentence's own tokens.
    """
    if target is not None:
        return bind_target_required(tokens, target)
    if not tokens:
        raise WordBindingError("Sentence contains no words to bind to")
    return tokens[0]


def bind_target_required(
    tokens: Sequence[Token], target: TargetWord | None
) -> Token:
    """Bind only to an explicit target word found in the sentence."""
    if target is None:
        raise WordBindingError("A target word is required")
    for token in tokens:
        if target.matches(token):
            return token
    shown = target.dictionary_form
    if target.reading is not None:
        shown += f" [{target.reading}]"
    raise WordBindingError(f"Target word {shown!r} does not occur in the sentence")


class SentenceMiner:
    """Sentence submission and mining-batch pipeline for many users."""

    def __init__(
        self,
        config: MinerConfig | str | Path | dict[str, Any] | None = None,
        *,
        tokenizer: Tokenizer | None = None,
        binding: BindingStrategy = bind_first_token,
        frequency_list: FrequencyList | None = None,
    ) -> None:
        if not isinstance(config, MinerConfig):
            config = load_config(config)
        self.config = config

        if frequency_list is None:
            frequency_list = (
                FrequencyList.load(config.frequency_list)
                if config.frequency_list else FrequencyList()
            )
        if tokenizer is None:
            tokenizer = SudachiTokenizer(config.sudachi_dictionary, config.split_mode)

        self._tokenizer = tokenizer
        self._binding = binding
        self._store = Store(config.database)
        self.ledger = VocabularyLedger(self._store)
        self.queue = SentenceIntakeQueue(
            self._store, config.maximum_pending_sentences, frequency_list
        )
        self.compositor = BatchCompositor(self._store, frequency_list)
        logger.debug(
            f"Opened {config.database} "
            f"(maximum pending sentences: {config.maximum_pending_sentences})"
        )

    def close(self) -> None:
        """Close the database connections."""
        self._store.close()

    def __enter__(self) -> SentenceMiner:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, username: str) -> int:
        """Register a user id for the identity collaborator."""
        username = username.strip()
        if not username:
            raise ValidationError("Username cannot be empty")
        with self._store.transaction() as conn:
            try:
                cur = conn.execute(
                    "INSERT INTO users (username) VALUES (?)", (username,)
                )
            except sqlite3.IntegrityError as e:
                raise ValidationError(f"User already exists: {username!r}") from e
        return cur.lastrowid

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def analyze(self, text: str) -> list[Morpheme]:
        return self._tokenizer.analyze(text)

    def submit(
        self, user_id: int, text: str, target: TargetWord | None = None
    ) -> Sentence:
        """Tokenize, count and queue a sentence.

        Every token occurrence is counted even when the queue is full: the
        ledger reflects all attempts, and the rejection is committed
        together with those counts before ``QueueFullError`` is raised.
        Tokenization and binding errors happen before anything is written.
        """
        text = text.strip() if isinstance(text, str) else text
        tokens = self._tokenizer.tokenize(text)
        bound = self._binding(tokens, target)

        rejected: QueueFullError | None = None
        with self._store.transaction(user_id) as conn:
            require_user(conn, user_id)
            word: Word | None = None
            for token in tokens:
                upserted = upsert_word(conn, user_id, token.dictionary_form, token.reading)
                if word is None and token == bound:
                    word = upserted
            if word is None:
                raise WordBindingError(
                    f"Bound word {bound.dictionary_form!r} is not a token of the sentence"
                )
            try:
                pending = check_admission(conn, user_id, self.queue.limit)
            except QueueFullError as e:
                rejected = e
                _hist.record_event(
                    conn, user_id, EventType.REJECT, word.id,
                    {"text": text, "pending": e.pending, "limit": e.limit},
                )
            else:
                sentence = insert_sentence(conn, user_id, word.id, text)
                _hist.record_event(
                    conn, user_id, EventType.SUBMIT, sentence.id,
                    {"word_id": word.id, "tokens": len(tokens)},
                )

        if rejected is not None:
            logger.warning(
                f"User {user_id}: sentence rejected, {rejected.pending}/"
                f"{rejected.limit} pending; {len(tokens)} token(s) counted"
            )
            raise rejected
        logger.info(
            f"User {user_id}: queued sentence {sentence.id} for "
            f"{word.dictionary_form} [{word.reading}] "
            f"({pending + 1}/{self.queue.limit} pending)"
        )
        return sentence

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def request_batch(
        self, user_id: int, sentence_ids: Iterable[int] | None = None
    ) -> MiningBatch:
        return self.compositor.form_batch(user_id, sentence_ids)

    def get_batch(self, user_id: int, batch_id: int) -> MiningBatch:
        return self.compositor.get_batch(user_id, batch_id)

    def list_batches(self, user_id: int) -> list[MiningBatch]:
        return self.compositor.list_batches(user_id)

    def batch_sentences(self, user_id: int, batch_id: int) -> list[SentenceEntry]:
        return self.compositor.batch_entries(user_id, batch_id)

    # ------------------------------------------------------------------
    # Queue and ledger reads
    # ------------------------------------------------------------------

    def count_pending(self, user_id: int) -> int:
        return self.queue.count_pending(user_id)

    def pending_sentences(self, user_id: int) -> list[SentenceEntry]:
        return self.queue.pending_entries(user_id)

    def discard_sentence(self, user_id: int, sentence_id: int) -> None:
        self.queue.discard(user_id, sentence_id)

    def get_word(self, user_id: int, word_id: int) -> Word:
        return self.ledger.get_word(user_id, word_id)

    def frequency_rank(self, user_id: int) -> Iterator[Word]:
        return self.ledger.frequency_rank(user_id)

    def get_history(
        self,
        user_id: int,
        *,
        event: EventType | str | None = None,
        since: str | None = None,
    ) -> list[PipelineEvent]:
        def fetch(conn: sqlite3.Connection) -> list[PipelineEvent]:
            require_user(conn, user_id)
            return _hist.query_events(conn, user_id, event=event, since=since)

        return self._store.read(fetch)
