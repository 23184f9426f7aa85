"""Tests for configuration loading."""

import pytest

from sentence_miner import ConfigError, MinerConfig, load_config
from sentence_miner.config import DEFAULT_MAXIMUM_PENDING_SENTENCES


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("MAXIMUM_PENDING_SENTENCES", raising=False)
    monkeypatch.delenv("SENTENCE_MINER_DATABASE", raising=False)


class TestSources:

    def test_defaults(self):
        config = load_config()
        assert config == MinerConfig()
        assert config.maximum_pending_sentences == DEFAULT_MAXIMUM_PENDING_SENTENCES == 250

    def test_from_file(self, tmp_path):
        path = tmp_path / "miner.yaml"
        path.write_text(
            "database: data/miner.db\n"
            "maximum_pending_sentences: 10\n"
            "frequency_list: data/jp.json\n"
            "tokenizer:\n"
            "  dictionary: full\n"
            "  split_mode: A\n"
        )
        config = load_config(path)
        assert config.database == "data/miner.db"
        assert config.maximum_pending_sentences == 10
        assert config.frequency_list == "data/jp.json"
        assert config.sudachi_dictionary == "full"
        assert config.split_mode == "A"

    def test_from_string(self):
        config = load_config("maximum_pending_sentences: 0\n")
        assert config.maximum_pending_sentences == 0

    def test_from_mapping(self):
        config = load_config({"database": ":memory:"})
        assert config.database == ":memory:"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == MinerConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml")


class TestValidation:

    def test_invalid_yaml_reports_line(self):
        with pytest.raises(ConfigError) as exc_info:
            load_config("database: a.db\nmaximum_pending_sentences: [1,\n")
        assert exc_info.value.line is not None

    def test_root_must_be_mapping(self):
        with pytest.raises(ConfigError):
            load_config("- a\n- b\n")

    def test_negative_limit(self):
        with pytest.raises(ConfigError):
            load_config({"maximum_pending_sentences": -1})

    @pytest.mark.parametrize("value", ["ten", 2.5, True])
    def test_non_integer_limit(self, value):
        with pytest.raises(ConfigError):
            load_config({"maximum_pending_sentences": value})

    def test_unknown_field(self):
        with pytest.raises(ConfigError):
            load_config({"max_pending": 3})

    def test_bad_split_mode(self):
        with pytest.raises(ConfigError):
            load_config({"tokenizer": {"split_mode": "Z"}})


class TestEnvironment:

    def test_limit_override(self, monkeypatch):
        monkeypatch.setenv("MAXIMUM_PENDING_SENTENCES", "5")
        assert load_config({"maximum_pending_sentences": 10}).maximum_pending_sentences == 5

    def test_zero_override(self, monkeypatch):
        monkeypatch.setenv("MAXIMUM_PENDING_SENTENCES", "0")
        assert load_config().maximum_pending_sentences == 0

    @pytest.mark.parametrize("value", ["lots", "-3", ""])
    def test_invalid_override_falls_back(self, monkeypatch, value):
        monkeypatch.setenv("MAXIMUM_PENDING_SENTENCES", value)
        assert load_config({"maximum_pending_sentences": 10}).maximum_pending_sentences == 10

    def test_database_override(self, monkeypatch):
        monkeypatch.setenv("SENTENCE_MINER_DATABASE", "/tmp/other.db")
        assert load_config({"database": "a.db"}).database == "/tmp/other.db"

    def test_env_can_be_ignored(self, monkeypatch):
        monkeypatch.setenv("MAXIMUM_PENDING_SENTENCES", "5")
        assert load_config(use_env=False).maximum_pending_sentences == 250
