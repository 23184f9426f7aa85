"""Tests for the database schema and its constraints."""

import sqlite3

import pytest

from sentence_miner import DatabaseError, SentenceMiner, MinerConfig
from sentence_miner import db


@pytest.fixture
def db_conn():
    conn = db.connect(":memory:")
    db.init_db(conn)
    yield conn
    conn.close()


def test_tables_exist(db_conn):
    rows = db_conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table'"
    ).fetchall()
    names = {r["name"] for r in rows}
    assert {"meta", "users", "words", "sentences", "mining_batches",
            "pipeline_events"} <= names


def test_schema_version_recorded(db_conn):
    row = db_conn.execute(
        "SELECT value FROM meta WHERE key = 'schema_version'"
    ).fetchone()
    assert row["value"] == db.SCHEMA_VERSION


def test_init_is_idempotent(db_conn):
    db.init_db(db_conn)
    db.check_schema_version(db_conn)


def test_pending_flag_matches_batch(db_conn):
    db_conn.execute("INSERT INTO users (id, username) VALUES (1, 'alice')")
    db_conn.execute(
        "INSERT INTO words (id, user_id, dictionary_form, reading) VALUES (1, 1, '猫', 'ネコ')"
    )
    db_conn.execute("INSERT INTO mining_batches (id, user_id) VALUES (1, 1)")
    with pytest.raises(sqlite3.IntegrityError):
        db_conn.execute(
            "INSERT INTO sentences (user_id, word_id, text, is_pending, mining_batch_id) "
            "VALUES (1, 1, 'x', 1, 1)"
        )
    with pytest.raises(sqlite3.IntegrityError):
        db_conn.execute(
            "INSERT INTO sentences (user_id, word_id, text, is_pending) VALUES (1, 1, 'x', 0)"
        )


def test_word_requires_user(db_conn):
    with pytest.raises(sqlite3.IntegrityError):
        db_conn.execute(
            "INSERT INTO words (user_id, dictionary_form, reading) VALUES (42, '猫', 'ネコ')"
        )


def test_frequency_never_decreases(db_conn):
    db_conn.execute("INSERT INTO users (id, username) VALUES (1, 'alice')")
    db_conn.execute(
        "INSERT INTO words (id, user_id, dictionary_form, reading, frequency) "
        "VALUES (1, 1, '猫', 'ネコ', 3)"
    )
    with pytest.raises(sqlite3.IntegrityError):
        db_conn.execute("UPDATE words SET frequency = 2 WHERE id = 1")


def test_updated_at_moves(db_conn):
    db_conn.execute("INSERT INTO users (id, username) VALUES (1, 'alice')")
    db_conn.execute(
        "INSERT INTO words (id, user_id, dictionary_form, reading, updated_at) "
        "VALUES (1, 1, '猫', 'ネコ', '2000-01-01T00:00:00.000')"
    )
    db_conn.execute("UPDATE words SET frequency = frequency + 1 WHERE id = 1")
    row = db_conn.execute("SELECT updated_at FROM words WHERE id = 1").fetchone()
    assert row["updated_at"] > "2000-01-01T00:00:00.000"


def test_version_mismatch(tmp_path, tokenizer):
    path = tmp_path / "miner.db"
    conn = db.connect(path)
    db.init_db(conn)
    conn.execute("UPDATE meta SET value = '0.1' WHERE key = 'schema_version'")
    conn.close()

    with pytest.raises(DatabaseError):
        SentenceMiner(MinerConfig(database=str(path)), tokenizer=tokenizer)


def test_reopen_keeps_data(tmp_path, tokenizer):
    config = MinerConfig(database=str(tmp_path / "miner.db"))
    with SentenceMiner(config, tokenizer=tokenizer) as miner:
        user = miner.create_user("alice")
        miner.submit(user, "猫")
    with SentenceMiner(config, tokenizer=tokenizer) as miner:
        assert miner.count_pending(user) == 1
