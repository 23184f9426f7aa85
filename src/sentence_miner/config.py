"""
Configuration loading for sentence-miner.

Settings come from a YAML file (or string, or mapping) and can be
overridden by environment variables:

    SENTENCE_MINER_DATABASE       path of the SQLite database
    MAXIMUM_PENDING_SENTENCES     admission control limit per user

Example file:

    database: data/miner.db
    maximum_pending_sentences: 250
    frequency_list: data/jp_frequency.json
    tokenizer:
      dictionary: core
      split_mode: C
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from sentence_miner.exceptions import ConfigError
from sentence_miner.tokenizer import SPLIT_MODES

logger = logging.getLogger(__name__)

DEFAULT_MAXIMUM_PENDING_SENTENCES = 250

DATABASE_ENV = "SENTENCE_MINER_DATABASE"
MAXIMUM_PENDING_ENV = "MAXIMUM_PENDING_SENTENCES"


@dataclass(frozen=True)
class MinerConfig:
    """Settings read once at start-up."""
    database: str = "sentence_miner.db"
    maximum_pending_sentences: int = DEFAULT_MAXIMUM_PENDING_SENTENCES
    frequency_list: Optional[str] = None
    sudachi_dictionary: str = "core"
    split_mode: str = "C"

    def __post_init__(self) -> None:
        limit = self.maximum_pending_sentences
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ConfigError("'maximum_pending_sentences' must be an integer")
        if limit < 0:
            raise ConfigError("'maximum_pending_sentences' cannot be negative")
        if self.split_mode not in SPLIT_MODES:
            raise ConfigError(
                f"'split_mode' must be one of {', '.join(SPLIT_MODES)}"
            )


def get_int_env_with_default(name: str, default: int) -> int:
    """Read a non-negative integer from the environment.

    Unset or unparsable values fall back to ``default``.
    """
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Ignoring {name}={value!r}: not an integer")
        return default
    if parsed < 0:
        logger.warning(f"Ignoring {name}={value!r}: negative")
        return default
    return parsed


def load_config(
    source: Union[str, Path, Mapping[str, Any], None] = None,
    *,
    use_env: bool = True,
) -> MinerConfig:
    """Load configuration from a YAML file, YAML string or mapping.

    Args:
        source: Path to a YAML file, YAML string, parsed mapping, or None
            for defaults
        use_env: Apply environment variable overrides

    Returns:
        MinerConfig object

    Raises:
        ConfigError: If the source cannot be parsed or holds invalid values
    """
    if source is None:
        data: Dict[str, Any] = {}
    elif isinstance(source, Mapping):
        data = dict(source)
    elif isinstance(source, Path) or _is_file_path(source):
        data = _load_yaml_file(Path(source))
    else:
        data = _load_yaml(source, "YAML content")

    config = _parse_config(data)
    if use_env:
        config = _apply_env(config)
    return config


def _is_file_path(s: str) -> bool:
    """Check if a string looks like a file path."""
    if "\n" in s:
        return False
    if "/" in s or "\\" in s:
        return True
    return s.endswith((".yaml", ".yml"))


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return _load_yaml(f.read(), f"config file {path}")


def _load_yaml(content: str, what: str) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line_num = mark.line + 1 if mark else None
        raise ConfigError(f"Invalid YAML in {what}: {e}", line=line_num) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root of {what} must be a mapping")
    return data


def _parse_config(data: Dict[str, Any]) -> MinerConfig:
    known = {"database", "maximum_pending_sentences", "frequency_list", "tokenizer"}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config field(s): {', '.join(unknown)}")

    kwargs: Dict[str, Any] = {}
    if "database" in data:
        kwargs["database"] = str(data["database"])
    if "maximum_pending_sentences" in data:
        kwargs["maximum_pending_sentences"] = data["maximum_pending_sentences"]
    if data.get("frequency_list") is not None:
        kwargs["frequency_list"] = str(data["frequency_list"])

    tokenizer = data.get("tokenizer") or {}
    if not isinstance(tokenizer, dict):
        raise ConfigError("Field 'tokenizer' must be a mapping")
    if "dictionary" in tokenizer:
        kwargs["sudachi_dictionary"] = str(tokenizer["dictionary"])
    if "split_mode" in tokenizer:
        kwargs["split_mode"] = str(tokenizer["split_mode"])

    return MinerConfig(**kwargs)


def _apply_env(config: MinerConfig) -> MinerConfig:
    database = os.environ.get(DATABASE_ENV) or config.database
    limit = get_int_env_with_default(
        MAXIMUM_PENDING_ENV, config.maximum_pending_sentences
    )
    return replace(config, database=database, maximum_pending_sentences=limit)
