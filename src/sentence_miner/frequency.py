"""Global corpus frequency list used to rank words for display."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from sentence_miner.exceptions import ConfigError


class FrequencyList:
    """Corpus rank of (dictionary form, reading) pairs.

    Ranks are 0-based positions in the source list; words that are not
    listed share the rank ``len(list) + 1``.  The first occurrence of a
    duplicated pair wins.
    """

    def __init__(self, words: Iterable[tuple[str, str]] = ()) -> None:
        self._ranks: dict[tuple[str, str], int] = {}
        for index, (dictionary_form, reading) in enumerate(words):
            self._ranks.setdefault((dictionary_form, reading), index)
        self.lowest_rank = len(self._ranks) + 1

    @classmethod
    def load(cls, path: str | Path) -> FrequencyList:
        """Load a JSON array of ``[dictionary_form, reading, ...]`` items."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read frequency list {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid frequency list {path}: {e.msg}", line=e.lineno
            ) from e

        if not isinstance(data, list):
            raise ConfigError(f"Frequency list {path} must be a JSON array")
        pairs: list[tuple[str, str]] = []
        for i, item in enumerate(data):
            if (
                not isinstance(item, list)
                or len(item) < 2
                or not all(isinstance(v, str) for v in item[:2])
            ):
                raise ConfigError(
                    f"Frequency list {path}: item {i} is not a "
                    "[dictionary_form, reading] pair"
                )
            pairs.append((item[0], item[1]))
        return cls(pairs)

    def __len__(self) -> int:
        return len(self._ranks)

    def rank(self, dictionary_form: str, reading: str) -> int:
        return self._ranks.get((dictionary_form, reading), self.lowest_rank)
