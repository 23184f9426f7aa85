"""Shared test fixtures for sentence-miner."""

import pytest

from sentence_miner import MinerConfig, Morpheme, SentenceMiner
from sentence_miner.tokenizer import check_text


class WhitespaceTokenizer:
    """Deterministic analyzer double.

    Words are separated by spaces; ``form/reading`` gives a word an explicit
    reading, otherwise the reading is the word itself.  A lone ``。`` is
    punctuation: analyzed like SudachiPy does, but never a token.
    """

    def analyze(self, text):
        text = check_text(text)
        morphemes = []
        for part in text.split():
            if part == "。":
                morphemes.append(Morpheme(part, part, part, ("補助記号",)))
                continue
            form, _, reading = part.partition("/")
            morphemes.append(Morpheme(part, form, reading or form, ("名詞",)))
        return morphemes

    def tokenize(self, text):
        return [
            m.to_token() for m in self.analyze(text)
            if m.part_of_speech[0] != "補助記号"
        ]


@pytest.fixture
def tokenizer():
    return WhitespaceTokenizer()


@pytest.fixture
def make_miner(tokenizer):
    """Factory for miners with a given limit; closes them afterwards."""
    miners = []

    def _make(limit=250, database=":memory:", **kwargs):
        config = MinerConfig(database=str(database), maximum_pending_sentences=limit)
        kwargs.setdefault("tokenizer", tokenizer)
        miner = SentenceMiner(config, **kwargs)
        miners.append(miner)
        return miner

    yield _make
    for miner in miners:
        miner.close()


@pytest.fixture
def miner(make_miner):
    """An in-memory miner with the default limit."""
    return make_miner()


@pytest.fixture
def user(miner):
    return miner.create_user("alice")


@pytest.fixture
def other_user(miner):
    return miner.create_user("bob")
