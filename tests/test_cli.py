"""Tests for the sentence-miner command-line interface."""

import pytest

from sentence_miner import cli


@pytest.fixture
def run(monkeypatch, tmp_path, tokenizer, capsys):
    """Run the CLI against a temporary database with the test tokenizer."""
    monkeypatch.setattr(
        "sentence_miner.miner.SudachiTokenizer", lambda *args, **kwargs: tokenizer
    )
    monkeypatch.delenv("MAXIMUM_PENDING_SENTENCES", raising=False)
    monkeypatch.delenv("SENTENCE_MINER_DATABASE", raising=False)
    config = tmp_path / "miner.yaml"
    config.write_text(
        f"database: {tmp_path / 'miner.db'}\nmaximum_pending_sentences: 2\n"
    )

    def _run(*argv):
        code = cli.main(["--config", str(config), *argv])
        return code, capsys.readouterr().out

    return _run


def test_no_command(run):
    code, _ = run()
    assert code == 1


def test_submit_and_batch(run):
    assert run("add-user", "alice")[0] == 0

    code, out = run("submit", "1", "猫/ネコ が いる")
    assert code == 0
    assert "猫 [ネコ]" in out
    assert "Pending: 1/2" in out

    code, out = run("submit", "1", "犬 が いる", "--word", "いる")
    assert code == 0
    assert "いる [いる]" in out

    code, out = run("submit", "1", "鳥")
    assert code == 1
    assert "Pending sentences limit reached" in out

    code, out = run("pending", "1")
    assert "猫/ネコ が いる" in out

    code, out = run("batch", "1")
    assert code == 0
    assert "Created batch #1 with 2 sentence(s)" in out

    code, out = run("show-batch", "1", "1")
    assert "犬 が いる" in out

    code, out = run("batches", "1")
    assert code == 0

    code, out = run("words", "1", "--unmined")
    assert "鳥" in out
    assert "猫" not in out


def test_empty_batch(run):
    run("add-user", "alice")
    code, out = run("batch", "1")
    assert code == 1
    assert "[ERROR]" in out


def test_discard(run):
    run("add-user", "alice")
    run("submit", "1", "猫")
    code, out = run("discard", "1", "1")
    assert code == 0
    code, out = run("pending", "1")
    assert "No pending sentences." in out


def test_history(run):
    run("add-user", "alice")
    run("submit", "1", "猫")
    code, out = run("history", "1", "--event", "SUBMIT")
    assert code == 0
    assert "SUBMIT" in out


def test_reading_requires_word(run):
    run("add-user", "alice")
    code, out = run("submit", "1", "猫", "--reading", "ネコ")
    assert code == 1


def test_bad_config(tmp_path, capsys):
    config = tmp_path / "bad.yaml"
    config.write_text("maximum_pending_sentences: -4\n")
    assert cli.main(["--config", str(config), "batches", "1"]) == 1
    assert "[CONFIG ERROR]" in capsys.readouterr().out


def test_unknown_user(run):
    code, out = run("pending", "5")
    assert code == 1
    assert "User not found" in out
