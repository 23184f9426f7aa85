"""Morphological tokenization of submitted sentences.

The pipeline only depends on the :class:`Tokenizer` protocol.  The default
implementation wraps SudachiPy: the system dictionary is loaded once per
:class:`SudachiTokenizer` and shared read-only, while the (non thread-safe)
SudachiPy tokenizer objects are created per thread.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

from sudachipy import Dictionary, SplitMode

from sentence_miner.exceptions import TokenizationError
from sentence_miner.models import Morpheme, Token

logger = logging.getLogger(__name__)

# Part-of-speech tag SudachiPy gives runs of whitespace
_WHITESPACE_POS = "空白"

# Punctuation, brackets and similar marks; shown by analyze() but never words
_PUNCTUATION_POS = "補助記号"

# Placeholder analyzers emit for "no value"
_EMPTY_FEATURE = "*"

SPLIT_MODES = ("A", "B", "C")


class Tokenizer(Protocol):
    """What the pipeline needs from a morphological analyzer."""

    def tokenize(self, text: str) -> list[Token]:
        """Return the (dictionary form, reading) of every word in ``text``.

        Order is preserved and duplicates are kept.
        """
        ...

    def analyze(self, text: str) -> list[Morpheme]:
        """Return every morpheme in ``text`` with its features."""
        ...


def check_text(text: Any) -> str:
    """Reject input no analyzer can process."""
    if not isinstance(text, str):
        raise TokenizationError(f"Expected text, got {type(text).__name__}")
    if not text.strip():
        raise TokenizationError("Cannot tokenize empty text")
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise TokenizationError(f"Text is not valid UTF-8: {e}") from e
    return text


class SudachiTokenizer:
    """:class:`Tokenizer` backed by SudachiPy."""

    def __init__(self, dictionary: str = "core", split_mode: str = "C") -> None:
        if split_mode not in SPLIT_MODES:
            raise ValueError(
                f"Invalid split mode: {split_mode!r} (expected one of {SPLIT_MODES})"
            )
        self._mode = getattr(SplitMode, split_mode)
        self._dictionary = Dictionary(dict=dictionary)
        self._local = threading.local()
        logger.debug(f"Loaded Sudachi dictionary {dictionary!r}, mode {split_mode}")

    def _tokenizer(self) -> Any:
        tok = getattr(self._local, "tokenizer", None)
        if tok is None:
            tok = self._local.tokenizer = self._dictionary.tokenizer(mode=self._mode)
        return tok

    def _run(self, text: str) -> list[Any]:
        try:
            return list(self._tokenizer().tokenize(text))
        except Exception as e:
            raise TokenizationError(f"Analyzer failed: {e}") from e

    def _dictionary_reading(self, dictionary_form: str, default: str) -> str:
        """Reading of the dictionary form itself, not of the inflected surface."""
        readings = [
            m.reading_form() for m in self._run(dictionary_form)
            if m.part_of_speech()[0] != _WHITESPACE_POS
        ]
        if not readings or any(r in ("", _EMPTY_FEATURE) for r in readings):
            return default
        return "".join(readings)

    def analyze(self, text: str) -> list[Morpheme]:
        text = check_text(text)
        morphemes: list[Morpheme] = []
        for m in self._run(text):
            pos = tuple(m.part_of_speech())
            if pos and pos[0] == _WHITESPACE_POS:
                continue
            surface = m.surface()
            dictionary_form = m.dictionary_form()
            if dictionary_form in ("", _EMPTY_FEATURE):
                dictionary_form = surface
            reading = m.reading_form()
            if reading in ("", _EMPTY_FEATURE):
                reading = surface
            elif dictionary_form != surface:
                reading = self._dictionary_reading(dictionary_form, reading)
            morphemes.append(Morpheme(surface, dictionary_form, reading, pos))
        return morphemes

    def tokenize(self, text: str) -> list[Token]:
        return [
            m.to_token() for m in self.analyze(text)
            if m.part_of_speech[:1] != (_PUNCTUATION_POS,)
        ]
