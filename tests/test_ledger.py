"""Tests for the vocabulary ledger."""

import sqlite3

import pytest

from sentence_miner import NotFoundError


class TestUpsertOccurrence:

    def test_creates_word(self, miner, user):
        word = miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        assert word.user_id == user
        assert word.dictionary_form == "猫"
        assert word.reading == "ネコ"
        assert word.frequency == 1
        assert not word.is_mined

    def test_increments_existing_word(self, miner, user):
        first = miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        third = miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        assert third.id == first.id
        assert third.frequency == 3

    def test_reading_is_part_of_key(self, miner, user):
        a = miner.ledger.upsert_occurrence(user, "辛い", "カライ")
        b = miner.ledger.upsert_occurrence(user, "辛い", "ツライ")
        assert a.id != b.id
        assert b.frequency == 1

    def test_words_are_per_user(self, miner, user, other_user):
        mine = miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        theirs = miner.ledger.upsert_occurrence(other_user, "猫", "ネコ")
        assert mine.id != theirs.id
        assert theirs.frequency == 1

    def test_unknown_user(self, miner):
        with pytest.raises(NotFoundError):
            miner.ledger.upsert_occurrence(999, "猫", "ネコ")

    def test_occurrence_keeps_mined_state(self, miner, user):
        word = miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        miner.ledger.mark_mined(user, {word.id})
        again = miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        assert again.is_mined
        assert again.frequency == 2


class TestMarkMined:

    def test_flips_and_counts(self, miner, user):
        a = miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        b = miner.ledger.upsert_occurrence(user, "犬", "イヌ")
        assert miner.ledger.mark_mined(user, {a.id, b.id}) == 2
        assert miner.get_word(user, a.id).is_mined
        assert miner.get_word(user, b.id).is_mined

    def test_idempotent(self, miner, user):
        a = miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        b = miner.ledger.upsert_occurrence(user, "犬", "イヌ")
        miner.ledger.mark_mined(user, {a.id})
        assert miner.ledger.mark_mined(user, {a.id, b.id}) == 1
        assert miner.ledger.mark_mined(user, {a.id, b.id}) == 0
        words = {w.id: w.is_mined for w in miner.frequency_rank(user)}
        assert words == {a.id: True, b.id: True}

    def test_ignores_unknown_and_foreign_words(self, miner, user, other_user):
        theirs = miner.ledger.upsert_occurrence(other_user, "猫", "ネコ")
        assert miner.ledger.mark_mined(user, {theirs.id, 12345}) == 0
        assert not miner.get_word(other_user, theirs.id).is_mined

    def test_large_word_set(self, miner, user):
        ids = [
            miner.ledger.upsert_occurrence(user, f"w{i}", f"r{i}").id
            for i in range(1200)
        ]
        assert miner.ledger.mark_mined(user, ids) == 1200

    def test_empty_set(self, miner, user):
        assert miner.ledger.mark_mined(user, set()) == 0

    def test_store_refuses_unmining(self, miner, user):
        word = miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        miner.ledger.mark_mined(user, {word.id})
        with pytest.raises(sqlite3.IntegrityError):
            with miner._store.transaction(user) as conn:
                conn.execute("UPDATE words SET is_mined = 0 WHERE id = ?", (word.id,))
        assert miner.get_word(user, word.id).is_mined


class TestFrequencyRank:

    def test_order(self, miner, user):
        for form, times in [("b", 2), ("a", 2), ("c", 5), ("d", 1)]:
            for _ in range(times):
                miner.ledger.upsert_occurrence(user, form, form)
        ranked = [(w.dictionary_form, w.frequency) for w in miner.frequency_rank(user)]
        assert ranked == [("c", 5), ("a", 2), ("b", 2), ("d", 1)]

    def test_is_lazy_and_pages(self, miner, user):
        for i in range(450):
            miner.ledger.upsert_occurrence(user, f"w{i:03d}", "r")
        miner.ledger.upsert_occurrence(user, "w449", "r")

        ranked = miner.frequency_rank(user)
        first = next(ranked)
        assert first.dictionary_form == "w449"
        assert first.frequency == 2
        rest = list(ranked)
        assert len(rest) == 449
        assert [w.dictionary_form for w in rest] == [f"w{i:03d}" for i in range(449)]

    def test_only_own_words(self, miner, user, other_user):
        miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        miner.ledger.upsert_occurrence(other_user, "犬", "イヌ")
        assert [w.dictionary_form for w in miner.frequency_rank(user)] == ["猫"]

    def test_unknown_user(self, miner):
        with pytest.raises(NotFoundError):
            next(miner.frequency_rank(999))


class TestLookups:

    def test_get_word_not_found(self, miner, user):
        with pytest.raises(NotFoundError):
            miner.get_word(user, 42)

    def test_get_word_of_other_user(self, miner, user, other_user):
        word = miner.ledger.upsert_occurrence(other_user, "猫", "ネコ")
        with pytest.raises(NotFoundError):
            miner.get_word(user, word.id)

    def test_find_word(self, miner, user):
        word = miner.ledger.upsert_occurrence(user, "猫", "ネコ")
        assert miner.ledger.find_word(user, "猫", "ネコ") == word
        assert miner.ledger.find_word(user, "猫", "ビョウ") is None
