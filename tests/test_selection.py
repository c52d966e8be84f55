import random

from vocabquest.selection import priority_cap, select_practice_words

WORDS = [f"w{i}" for i in range(20)]


def test_small_unit_returns_every_word_once() -> None:
    words = ["abate", "zealous", "candid"]
    selected = select_practice_words(words, {"abate"}, 3, rng=random.Random(1))
    assert sorted(selected) == sorted(words)
    assert len(set(selected)) == 3


def test_unit_shorter_than_target_is_not_padded() -> None:
    selected = select_practice_words(["a", "b"], set(), 10, rng=random.Random(1))
    assert sorted(selected) == ["a", "b"]


def test_priority_words_are_capped_at_half() -> None:
    missed = set(WORDS[:12])
    for seed in range(20):
        selected = select_practice_words(WORDS, missed, 10, rng=random.Random(seed))
        assert len(selected) == 10
        assert sum(1 for w in selected if w in missed) == priority_cap(10) == 5
        assert any(w not in missed for w in selected)


def test_missed_words_are_included_when_below_cap() -> None:
    for seed in range(20):
        selected = select_practice_words(WORDS, {"W3"}, 10, rng=random.Random(seed))
        assert "w3" in selected


def test_backfills_from_priority_when_remainder_runs_out() -> None:
    words = WORDS[:6]
    selected = select_practice_words(words, set(words[:5]), 6, rng=random.Random(0))
    assert sorted(selected) == sorted(words)


def test_no_history_is_uniform_sample_without_duplicates() -> None:
    selected = select_practice_words(WORDS + ["W1"], set(), 10, rng=random.Random(5))
    assert len(selected) == 10
    assert len({w.lower() for w in selected}) == 10


def test_priority_words_are_not_always_first() -> None:
    missed = set(WORDS[:5])
    first_positions = set()
    for seed in range(30):
        selected = select_practice_words(WORDS, missed, 10, rng=random.Random(seed))
        first_positions.add(selected[0] in missed)
    assert first_positions == {True, False}


def test_zero_target_returns_nothing() -> None:
    assert select_practice_words(WORDS, set(), 0) == []
